"""Create-or-replace of a voter's ballot as one atomic unit.

Uniqueness is decided by the store, not by the earlier lookup: a token is claimed with a
compare-and-swap update and a social ballot insert is guarded by the
``(event_id, user_id)`` constraint. Losing either race surfaces as ``AlreadySubmitted``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy import false, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from qvote.db import begin_write
from qvote.db_models import AccessToken, Ballot, BallotLine, Event, utcnow
from qvote.engine import cost as qv
from qvote.engine.errors import (
    AlreadySubmitted,
    BallotNotFound,
    NotOwner,
    SettlementFailed,
    VoteRejected,
)
from qvote.engine.identity import (
    Credentials,
    Resolution,
    TokenVoter,
    Voter,
    ballot_owned_by,
    resolve,
)
from qvote.engine.validator import validate_for_event
from qvote.security.logger import vote_logger as logger


def _build_lines(lines: Sequence[Any]) -> List[BallotLine]:
    return [
        BallotLine(option_id=line.option_id, amount=line.amount, cost=qv.cost(line.amount))
        for line in lines
    ]


class VoteSettlementService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def submit(
        self,
        event: Event,
        credentials: Credentials,
        lines: Sequence[Any],
        is_amendment: bool = False,
        ballot_id: Optional[str] = None,
    ) -> str:
        """
        Record a first ballot or replace an existing one and return the ballot id.

        Rejections are raised as ``VoteRejected`` subclasses and are never retried here.
        ``SettlementFailed`` means the store failed mid-commit; nothing was written and
        the call can be repeated as is.
        """
        now = self._clock()
        event_id = event.id
        try:
            begin_write(self.db)
            resolution = resolve(self.db, event, credentials, now)
            if resolution.already_voted and not is_amendment:
                raise AlreadySubmitted("this voter has already submitted a ballot")

            target: Optional[Ballot] = None
            if is_amendment:
                target = self._owned_ballot(event, resolution, ballot_id)

            summary = validate_for_event(event, lines)

            if target is not None:
                self._replace_lines(target, lines, now)
                settled_id = target.id
            else:
                settled_id = self._create(event, resolution.voter, lines, now)
            self.db.commit()
        except VoteRejected as exc:
            self.db.rollback()
            logger.warning(f"Vote rejected for event {event_id}: {exc.code} {exc.extra}")
            raise
        except IntegrityError:
            self.db.rollback()
            if is_amendment:
                logger.exception(f"Amendment failed on a constraint for event {event_id}")
                raise SettlementFailed("ballot could not be stored")
            logger.warning(f"Duplicate ballot blocked by constraint for event {event_id}")
            raise AlreadySubmitted("this voter has already submitted a ballot")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Settlement failed for event {event_id}")
            raise SettlementFailed("ballot could not be stored")

        action = "amended" if is_amendment else "created"
        logger.info(
            f"Ballot {settled_id} {action} for event {event_id} "
            f"voter={resolution.voter.kind} cost={summary.total_cost}"
        )
        return settled_id

    def _owned_ballot(
        self, event: Event, resolution: Resolution, ballot_id: Optional[str]
    ) -> Ballot:
        target_id = ballot_id or resolution.existing_ballot_id
        if target_id is None:
            raise BallotNotFound("there is no ballot to amend")
        ballot = self.db.get(Ballot, target_id, with_for_update=True)
        if ballot is None or ballot.event_id != event.id:
            raise BallotNotFound("there is no ballot to amend")
        if not ballot_owned_by(ballot, resolution.voter):
            raise NotOwner("ballot belongs to another voter")
        return ballot

    def _create(self, event: Event, voter: Voter, lines: Sequence[Any], now: datetime) -> str:
        ballot = Ballot(event_id=event.id, created_at=now, updated_at=now, lines=_build_lines(lines))
        if isinstance(voter, TokenVoter):
            claimed = self.db.execute(
                update(AccessToken)
                .where(AccessToken.id == voter.token_id, AccessToken.is_used == false())
                .values(is_used=True)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                raise AlreadySubmitted("this access token has already been used")
            ballot.access_token_id = voter.token_id
        else:
            ballot.user_id = voter.user_id
        self.db.add(ballot)
        self.db.flush()
        return ballot.id

    def _replace_lines(self, ballot: Ballot, lines: Sequence[Any], now: datetime) -> None:
        # Old lines must be gone before the new ones hit uq_ballot_lines_option.
        ballot.lines.clear()
        self.db.flush()
        ballot.lines.extend(_build_lines(lines))
        ballot.updated_at = now
        self.db.flush()


def submit_vote(
    db: Session,
    event: Event,
    credentials: Credentials,
    lines: Sequence[Any],
    is_amendment: bool = False,
    ballot_id: Optional[str] = None,
    clock: Callable[[], datetime] = utcnow,
) -> str:
    return VoteSettlementService(db, clock=clock).submit(
        event, credentials, lines, is_amendment=is_amendment, ballot_id=ballot_id
    )


__all__ = ["VoteSettlementService", "submit_vote"]
