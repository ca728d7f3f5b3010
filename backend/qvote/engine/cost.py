"""Quadratic cost arithmetic: casting n votes on one option costs n**2 credits."""
from __future__ import annotations

import math
from typing import Iterable


def cost(votes: int) -> int:
    return votes * votes


def max_votes(credits: int) -> int:
    """Largest vote count whose cost fits in ``credits``."""
    return math.isqrt(credits)


def total_cost(amounts: Iterable[int]) -> int:
    return sum(cost(amount) for amount in amounts)


def remaining(budget: int, amounts: Iterable[int]) -> int:
    # May go negative; callers decide what an overrun means.
    return budget - total_cost(amounts)


def marginal_cost(current_amount: int, delta: int) -> int:
    return cost(current_amount + delta) - cost(current_amount)


def max_additional_votes(current_amount: int, remaining_credits: int) -> int:
    """Highest amount an option can be raised to, giving back what it already costs."""
    return max_votes(remaining_credits + cost(current_amount))


def can_change_vote(current_amount: int, new_amount: int, remaining_credits: int) -> bool:
    return marginal_cost(current_amount, new_amount - current_amount) <= remaining_credits


__all__ = [
    "cost",
    "max_votes",
    "total_cost",
    "remaining",
    "marginal_cost",
    "max_additional_votes",
    "can_change_vote",
]
