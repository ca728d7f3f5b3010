"""Access-token issuance for token-mode ("individual") events."""
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import List

from sqlalchemy import func, select, true
from sqlalchemy.orm import Session

from qvote.core.settings import get_settings
from qvote.db import begin_write
from qvote.db_models import TOKEN_MODE, AccessToken, Event

ACCESS_TOKEN_BYTES = 16
ADMIN_TOKEN_BYTES = 32

_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def generate_access_token() -> str:
    return secrets.token_urlsafe(ACCESS_TOKEN_BYTES)


def generate_admin_token() -> str:
    return secrets.token_urlsafe(ADMIN_TOKEN_BYTES)


def is_valid_token_format(token: str) -> bool:
    return bool(_TOKEN_PATTERN.fullmatch(token or ""))


def has_min_entropy(token: str, min_bits: int = 128) -> bool:
    # base64url carries 6 bits per character
    return len(token) * 6 >= min_bits


def check_admin_token(event: Event, supplied: str) -> bool:
    return secrets.compare_digest(event.admin_token.encode(), (supplied or "").encode())


def issue_access_tokens(db: Session, event: Event, count: int) -> List[AccessToken]:
    """Create ``count`` unused tokens for ``event`` in one transaction."""
    limit = get_settings().token_max_generate
    if count < 1 or count > limit:
        raise ValueError(f"count must be between 1 and {limit}")
    if event.auth_mode != TOKEN_MODE:
        raise ValueError("access tokens are only issued for individual-mode events")

    begin_write(db)
    tokens = [AccessToken(event_id=event.id, token=generate_access_token()) for _ in range(count)]
    db.add_all(tokens)
    db.commit()
    for token in tokens:
        db.refresh(token)
    return tokens


@dataclass(frozen=True)
class TokenStatistics:
    total_issued: int
    total_used: int
    total_unused: int
    usage_rate: float


def token_statistics(db: Session, event_id: str) -> TokenStatistics:
    issued = db.execute(
        select(func.count(AccessToken.id)).where(AccessToken.event_id == event_id)
    ).scalar_one()
    used = db.execute(
        select(func.count(AccessToken.id)).where(
            AccessToken.event_id == event_id, AccessToken.is_used == true()
        )
    ).scalar_one()
    rate = round(used / issued * 100, 2) if issued > 0 else 0.0
    return TokenStatistics(
        total_issued=issued, total_used=used, total_unused=issued - used, usage_rate=rate
    )


__all__ = [
    "generate_access_token",
    "generate_admin_token",
    "is_valid_token_format",
    "has_min_entropy",
    "check_admin_token",
    "issue_access_tokens",
    "TokenStatistics",
    "token_statistics",
]
