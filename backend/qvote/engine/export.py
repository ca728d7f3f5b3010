"""Row layouts for the summary and raw CSV exports."""
from __future__ import annotations

import csv
import io
from typing import Any, Iterable, List, Sequence

from qvote.db_models import Event, as_utc
from qvote.engine import cost as qv
from qvote.engine.results import ballot_amounts
from qvote.models import ResultsSnapshot

SUMMARY_HEADER = ["rank", "title", "totalVotes", "creditsUsed", "voterCount"]


def summary_rows(snapshot: ResultsSnapshot) -> List[List[Any]]:
    ranked = sorted(snapshot.results, key=lambda r: r.total_votes, reverse=True)
    return [
        [rank, r.title, r.total_votes, r.total_cost, r.voter_count]
        for rank, r in enumerate(ranked, start=1)
    ]


def raw_header(event: Event) -> List[str]:
    return ["voteId", "votedAt", *(option.title for option in event.options), "totalCost"]


def raw_rows(event: Event, ballots: Iterable[Any]) -> List[List[Any]]:
    """One row per ballot, oldest first, with a zero for every option it left out."""
    ordered = sorted(ballots, key=lambda b: (as_utc(b.created_at), b.id))
    rows = []
    for ballot in ordered:
        amounts = ballot_amounts(ballot)
        rows.append([
            ballot.id,
            as_utc(ballot.created_at).isoformat(),
            *(amounts.get(option.id, 0) for option in event.options),
            qv.total_cost(amounts.values()),
        ])
    return rows


def render_csv(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


__all__ = ["SUMMARY_HEADER", "summary_rows", "raw_header", "raw_rows", "render_csv"]
