from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from qvote.core.rate_limit import event_create_rate_limit, limiter
from qvote.db import get_db
from qvote.db_models import Event, utcnow
from qvote.engine.events import SlugTaken, create_event, load_event
from qvote.engine.identity import event_status
from qvote.engine.tokens import check_admin_token, issue_access_tokens, token_statistics
from qvote.models import (
    EventCreate,
    EventCreated,
    EventOut,
    IssuedToken,
    OptionOut,
    TokenIssueRequest,
    TokenStatsOut,
)

router = APIRouter(prefix="/events", tags=["events"])


def require_admin(event: Event, admin_token: str) -> None:
    if not check_admin_token(event, admin_token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="no_permission")


@router.post("", response_model=EventCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(event_create_rate_limit)
def create(
    request: Request, payload: EventCreate, db: Session = Depends(get_db)
) -> EventCreated:
    try:
        event = create_event(db, payload)
    except SlugTaken:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="slug_already_exists")
    return EventCreated(id=event.id, slug=event.slug, admin_token=event.admin_token)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)) -> EventOut:
    event = load_event(db, event_id)
    return EventOut(
        id=event.id,
        slug=event.slug,
        title=event.title,
        description=event.description,
        start_date=event.start_date,
        end_date=event.end_date,
        credits_per_voter=event.credits_per_voter,
        voting_mode=event.voting_mode,
        status=event_status(event, utcnow()),
        options=[
            OptionOut(
                id=o.id,
                title=o.title,
                description=o.description,
                url=o.url,
                image_url=o.image_url,
                position=o.position,
            )
            for o in event.options
        ],
    )


@router.post(
    "/{event_id}/tokens",
    response_model=List[IssuedToken],
    status_code=status.HTTP_201_CREATED,
)
def issue_tokens(
    event_id: str,
    payload: TokenIssueRequest,
    x_admin_token: str = Header(default=""),
    db: Session = Depends(get_db),
) -> List[IssuedToken]:
    event = load_event(db, event_id)
    require_admin(event, x_admin_token)
    try:
        tokens = issue_access_tokens(db, event, payload.count)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return [
        IssuedToken(id=t.id, token=t.token, is_used=t.is_used, created_at=t.created_at)
        for t in tokens
    ]


@router.get("/{event_id}/tokens/stats", response_model=TokenStatsOut)
def token_stats(
    event_id: str,
    x_admin_token: str = Header(default=""),
    db: Session = Depends(get_db),
) -> TokenStatsOut:
    event = load_event(db, event_id)
    require_admin(event, x_admin_token)
    stats = token_statistics(db, event.id)
    return TokenStatsOut(
        total_issued=stats.total_issued,
        total_used=stats.total_used,
        total_unused=stats.total_unused,
        usage_rate=stats.usage_rate,
    )
