"""Voter identity resolution.

An event either hands out single-use access tokens ("individual" mode) or relies on an
external sign-in provider ("google", "line", "discord"). Both collapse to a tagged voter
handle, ``TokenVoter`` or ``SocialVoter``, which is what uniqueness is enforced on.

The current time and the credentials are always passed in by the caller; nothing here
reads request state or the wall clock.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from qvote.db_models import TOKEN_MODE, AccessToken, Ballot, Event, as_utc
from qvote.engine.errors import InvalidToken, NotActive, NotAuthenticated
from qvote.engine.tokens import has_min_entropy, is_valid_token_format


@dataclass(frozen=True)
class TokenVoter:
    token_id: str
    kind: str = "token"


@dataclass(frozen=True)
class SocialVoter:
    user_id: str
    kind: str = "social"


Voter = Union[TokenVoter, SocialVoter]


@dataclass(frozen=True)
class Credentials:
    token: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class Resolution:
    voter: Voter
    already_voted: bool
    existing_ballot_id: Optional[str] = None


def check_window(event: Event, now: datetime) -> None:
    now = as_utc(now)
    if now < as_utc(event.start_date):
        raise NotActive(NotActive.BEFORE_START)
    if now > as_utc(event.end_date):
        raise NotActive(NotActive.AFTER_END)


def event_status(event: Event, now: datetime) -> str:
    try:
        check_window(event, now)
    except NotActive as exc:
        return "upcoming" if exc.boundary == NotActive.BEFORE_START else "ended"
    return "ongoing"


def _identify_token(db: Session, event: Event, token: Optional[str]) -> Resolution:
    if not token:
        raise InvalidToken("an access token is required for this event")
    if not is_valid_token_format(token) or not has_min_entropy(token):
        # Never issued by us; skip the lookup.
        raise InvalidToken("malformed access token")
    row = db.execute(
        select(AccessToken.id, AccessToken.is_used, Ballot.id)
        .outerjoin(Ballot, Ballot.access_token_id == AccessToken.id)
        .where(AccessToken.event_id == event.id, AccessToken.token == token)
    ).first()
    if row is None:
        raise InvalidToken("unknown access token")
    token_id, is_used, ballot_id = row
    return Resolution(
        voter=TokenVoter(token_id=token_id),
        already_voted=bool(is_used) or ballot_id is not None,
        existing_ballot_id=ballot_id,
    )


def _identify_social(db: Session, event: Event, user_id: Optional[str]) -> Resolution:
    if not user_id:
        raise NotAuthenticated("sign in to vote in this event")
    ballot_id = db.execute(
        select(Ballot.id).where(Ballot.event_id == event.id, Ballot.user_id == user_id)
    ).scalar_one_or_none()
    return Resolution(
        voter=SocialVoter(user_id=user_id),
        already_voted=ballot_id is not None,
        existing_ballot_id=ballot_id,
    )


def identify(db: Session, event: Event, credentials: Credentials) -> Resolution:
    """Resolve credentials to a voter handle without looking at the voting window."""
    if event.auth_mode == TOKEN_MODE:
        return _identify_token(db, event, credentials.token)
    return _identify_social(db, event, credentials.user_id)


def resolve(db: Session, event: Event, credentials: Credentials, now: datetime) -> Resolution:
    """
    Resolve the voter for a submission.

    The window is checked before any identity lookup so a closed event never reveals
    whether a token is valid.
    """
    check_window(event, now)
    return identify(db, event, credentials)


def ballot_owned_by(ballot: Ballot, voter: Voter) -> bool:
    if isinstance(voter, TokenVoter):
        return ballot.access_token_id == voter.token_id
    return ballot.user_id == voter.user_id


def existing_ballot(db: Session, event: Event, credentials: Credentials) -> Optional[Ballot]:
    resolution = identify(db, event, credentials)
    if resolution.existing_ballot_id is None:
        return None
    return db.execute(
        select(Ballot)
        .options(selectinload(Ballot.lines))
        .where(Ballot.id == resolution.existing_ballot_id)
    ).scalar_one_or_none()


__all__ = [
    "TokenVoter",
    "SocialVoter",
    "Voter",
    "Credentials",
    "Resolution",
    "check_window",
    "event_status",
    "identify",
    "resolve",
    "ballot_owned_by",
    "existing_ballot",
]
