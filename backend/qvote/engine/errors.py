"""Rejections raised by the vote settlement and results engine.

Every rejection carries a stable snake_case ``code`` that the HTTP layer reports as the
error detail, plus an ``extra`` mapping with whatever the caller needs to render an
actionable message (the budget overrun, the violated window boundary, ...).
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class VoteRejected(Exception):
    code = "vote_rejected"
    retryable = False

    def __init__(self, message: Optional[str] = None, **extra: Any):
        super().__init__(message or self.code)
        self.extra: Dict[str, Any] = extra

    def as_detail(self) -> Dict[str, Any]:
        return {"error": self.code, **self.extra}


class EventNotFound(VoteRejected):
    code = "event_not_found"


class InvalidToken(VoteRejected):
    code = "invalid_token"


class NotAuthenticated(VoteRejected):
    code = "not_authenticated"


class NotActive(VoteRejected):
    code = "not_active"

    BEFORE_START = "before_start"
    AFTER_END = "after_end"

    def __init__(self, boundary: str):
        super().__init__(f"voting is not active ({boundary})", boundary=boundary)
        self.boundary = boundary


class UnknownOption(VoteRejected):
    code = "unknown_option"


class DuplicateOption(VoteRejected):
    code = "duplicate_option"


class InvalidAmount(VoteRejected):
    code = "invalid_amount"


class BudgetExceeded(VoteRejected):
    code = "budget_exceeded"

    def __init__(self, used: int, limit: int):
        super().__init__(f"ballot costs {used} credits, limit is {limit}", used=used, limit=limit)
        self.used = used
        self.limit = limit

    @property
    def overrun(self) -> int:
        return self.used - self.limit


class EmptyBallot(VoteRejected):
    code = "empty_ballot"


class AlreadySubmitted(VoteRejected):
    code = "already_submitted"


class NotOwner(VoteRejected):
    code = "not_owner"


class BallotNotFound(VoteRejected):
    code = "ballot_not_found"


class SettlementFailed(VoteRejected):
    code = "settlement_failed"
    retryable = True


__all__ = [
    "VoteRejected",
    "EventNotFound",
    "InvalidToken",
    "NotAuthenticated",
    "NotActive",
    "UnknownOption",
    "DuplicateOption",
    "InvalidAmount",
    "BudgetExceeded",
    "EmptyBallot",
    "AlreadySubmitted",
    "NotOwner",
    "BallotNotFound",
    "SettlementFailed",
]
