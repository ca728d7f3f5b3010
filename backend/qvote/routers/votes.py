from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from qvote.core.rate_limit import limiter, vote_rate_limit
from qvote.db import get_db
from qvote.engine.events import load_event
from qvote.engine.identity import Credentials, existing_ballot
from qvote.engine.settlement import VoteSettlementService
from qvote.models import ExistingBallotOut, VoteLine, VoteSubmitRequest, VoteSubmitResponse
from qvote.security import get_voter_identity

router = APIRouter(prefix="/events", tags=["votes"])


@router.post("/{event_id}/votes", response_model=VoteSubmitResponse)
@limiter.limit(vote_rate_limit)
def submit_vote(
    request: Request,
    event_id: str,
    payload: VoteSubmitRequest,
    db: Session = Depends(get_db),
) -> VoteSubmitResponse:
    event = load_event(db, event_id)
    credentials = Credentials(token=payload.token, user_id=get_voter_identity(request))
    ballot_id = VoteSettlementService(db).submit(
        event,
        credentials,
        payload.lines,
        is_amendment=payload.is_amendment,
        ballot_id=payload.ballot_id,
    )
    return VoteSubmitResponse(ballot_id=ballot_id, is_amendment=payload.is_amendment)


@router.get("/{event_id}/votes/mine", response_model=ExistingBallotOut)
def my_ballot(
    request: Request,
    event_id: str,
    token: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> ExistingBallotOut:
    """Current ballot of the caller, used to pre-fill an amendment."""
    event = load_event(db, event_id)
    credentials = Credentials(token=token, user_id=get_voter_identity(request))
    ballot = existing_ballot(db, event, credentials)
    if ballot is None:
        raise HTTPException(status_code=404, detail="ballot_not_found")
    return ExistingBallotOut(
        ballot_id=ballot.id,
        lines=[VoteLine(option_id=line.option_id, amount=line.amount) for line in ballot.lines],
        created_at=ballot.created_at,
        updated_at=ballot.updated_at,
    )
