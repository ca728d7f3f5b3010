from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Set

from qvote.engine import cost as qv
from qvote.engine.errors import (
    BudgetExceeded,
    DuplicateOption,
    EmptyBallot,
    InvalidAmount,
    UnknownOption,
)


@dataclass(frozen=True)
class ProposedLine:
    option_id: str
    amount: int


@dataclass(frozen=True)
class BallotCost:
    total_cost: int
    remaining: int


def _is_vote_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_ballot(
    option_ids: Iterable[str], credits_per_voter: int, lines: Sequence[Any]
) -> BallotCost:
    """
    Check a proposed ballot against an event's options and credit budget.

    ``lines`` are objects with ``option_id`` and ``amount`` attributes. The checks run in a
    fixed order and the first failure is raised: unknown or repeated option, invalid amount,
    budget overrun, then empty ballot. First submissions and amendments share this rule set.
    """
    known: Set[str] = set(option_ids)
    seen: Set[str] = set()
    for line in lines:
        if line.option_id not in known:
            raise UnknownOption(f"option {line.option_id!r} is not part of this event")
        if line.option_id in seen:
            raise DuplicateOption(f"option {line.option_id!r} appears more than once")
        seen.add(line.option_id)

    for line in lines:
        if not _is_vote_count(line.amount):
            raise InvalidAmount(f"amount {line.amount!r} is not a non-negative integer")

    amounts = [line.amount for line in lines]
    used = qv.total_cost(amounts)
    if used > credits_per_voter:
        raise BudgetExceeded(used=used, limit=credits_per_voter)

    if not any(amount > 0 for amount in amounts):
        raise EmptyBallot("ballot must give at least one vote")

    return BallotCost(total_cost=used, remaining=credits_per_voter - used)


def validate_for_event(event, lines: Sequence[Any]) -> BallotCost:
    return validate_ballot((o.id for o in event.options), event.credits_per_voter, lines)


__all__ = ["ProposedLine", "BallotCost", "validate_ballot", "validate_for_event"]
