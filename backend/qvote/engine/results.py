"""Read-only aggregation of settled ballots into a results snapshot.

``compute_results`` is pure and works on whatever ballots it is handed; ``aggregate``
loads an event's committed ballots in one read and delegates to it. Missing lines and
zero-amount lines are treated identically throughout.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from qvote.db_models import TOKEN_MODE, AccessToken, Ballot, Event
from qvote.engine import cost as qv
from qvote.engine.events import load_event
from qvote.models import (
    Distribution,
    DistributionEntry,
    EventSummary,
    HiddenPreferences,
    OptionResult,
    OptionVotes,
    ResultsSnapshot,
    Statistics,
)


def ballot_amounts(ballot: Any) -> Dict[str, int]:
    amounts: Dict[str, int] = defaultdict(int)
    for line in ballot.lines:
        amounts[line.option_id] += line.amount
    return dict(amounts)


def top_choice(amounts: Dict[str, int], option_ids: Sequence[str]) -> Optional[str]:
    """
    The option a ballot gave the strictly largest amount to.

    Ties go to the option that comes first in display order. A ballot with nothing
    above zero has no top choice.
    """
    top, top_amount = None, 0
    for option_id in option_ids:
        amount = amounts.get(option_id, 0)
        if amount > top_amount:
            top, top_amount = option_id, amount
    return top


def _statistics(
    event: Event, ballot_costs: List[int], issued_tokens: int
) -> Statistics:
    participants = len(ballot_costs)
    used = sum(ballot_costs)
    participation_rate = 0.0
    if event.auth_mode == TOKEN_MODE and issued_tokens > 0:
        participation_rate = participants / issued_tokens * 100
    return Statistics(
        total_participants=participants,
        total_credits_used=used,
        total_credits_available=participants * event.credits_per_voter,
        average_credits_used=used / participants if participants else 0.0,
        participation_rate=participation_rate,
    )


def _hidden_preferences(
    options: Sequence[Any],
    per_ballot: List[Dict[str, int]],
    total_votes: Dict[str, int],
) -> HiddenPreferences:
    option_ids = [option.id for option in options]
    single: Counter = Counter()
    for amounts in per_ballot:
        choice = top_choice(amounts, option_ids)
        if choice is not None:
            single[choice] += 1

    single_vote_results = sorted(
        (OptionVotes(option_id=o.id, option_title=o.title, votes=single[o.id]) for o in options),
        key=lambda entry: entry.votes,
        reverse=True,
    )
    hidden_votes = sorted(
        (
            OptionVotes(option_id=o.id, option_title=o.title, votes=total_votes[o.id] - single[o.id])
            for o in options
            if total_votes[o.id] - single[o.id] > 0
        ),
        key=lambda entry: entry.votes,
        reverse=True,
    )
    return HiddenPreferences(
        single_vote_results=single_vote_results,
        hidden_votes=hidden_votes,
        total_hidden_votes=sum(entry.votes for entry in hidden_votes),
        total_qv_votes=sum(total_votes.values()),
    )


def compute_results(
    event: Event, ballots: Iterable[Any], issued_tokens: int = 0
) -> ResultsSnapshot:
    options = list(event.options)
    per_ballot = [ballot_amounts(ballot) for ballot in ballots]

    total_votes: Dict[str, int] = {o.id: 0 for o in options}
    total_cost: Dict[str, int] = {o.id: 0 for o in options}
    voter_count: Dict[str, int] = {o.id: 0 for o in options}
    spread: Dict[str, Counter] = {o.id: Counter() for o in options}

    for amounts in per_ballot:
        for option in options:
            amount = amounts.get(option.id, 0)
            spread[option.id][amount] += 1
            if amount > 0:
                total_votes[option.id] += amount
                total_cost[option.id] += qv.cost(amount)
                voter_count[option.id] += 1

    results = [
        OptionResult(
            id=o.id,
            title=o.title,
            description=o.description,
            image_url=o.image_url,
            url=o.url,
            total_votes=total_votes[o.id],
            total_cost=total_cost[o.id],
            voter_count=voter_count[o.id],
        )
        for o in options
    ]
    distributions = [
        Distribution(
            option_id=o.id,
            option_title=o.title,
            distribution=[
                DistributionEntry(votes=votes, count=count)
                for votes, count in sorted(spread[o.id].items())
            ],
        )
        for o in options
    ]
    ballot_costs = [qv.total_cost(amounts.values()) for amounts in per_ballot]

    return ResultsSnapshot(
        event=EventSummary(
            id=event.id,
            slug=event.slug,
            title=event.title,
            description=event.description,
            start_date=event.start_date,
            end_date=event.end_date,
            credits_per_voter=event.credits_per_voter,
            voting_mode=event.voting_mode,
        ),
        results=results,
        statistics=_statistics(event, ballot_costs, issued_tokens),
        distributions=distributions,
        hidden_preferences=_hidden_preferences(options, per_ballot, total_votes),
    )


def load_ballots(db: Session, event_id: str) -> List[Ballot]:
    return list(
        db.execute(
            select(Ballot)
            .options(selectinload(Ballot.lines))
            .where(Ballot.event_id == event_id)
            .order_by(Ballot.created_at, Ballot.id)
        ).scalars()
    )


def aggregate(db: Session, event_id_or_slug: str) -> ResultsSnapshot:
    """
    Snapshot of an event's committed ballots.

    The event, its ballots and the issued-token count are read in one deferred
    transaction with no commit in between, so on SQLite (WAL) all three come from the
    same snapshot while settlements keep committing. No write lock is taken.
    """
    event = load_event(db, event_id_or_slug)
    ballots = load_ballots(db, event.id)
    issued = db.execute(
        select(func.count(AccessToken.id)).where(AccessToken.event_id == event.id)
    ).scalar_one()
    return compute_results(event, ballots, issued_tokens=issued)


__all__ = [
    "ballot_amounts",
    "top_choice",
    "compute_results",
    "load_ballots",
    "aggregate",
]
