import random
import secrets
import threading
from types import SimpleNamespace

from sqlalchemy import update

from qvote.db import begin_write
from qvote.db_models import AccessToken
from qvote.engine import results as results_module
from qvote.engine.events import load_event
from qvote.engine.identity import Credentials
from qvote.engine.results import aggregate, compute_results, top_choice
from qvote.engine.settlement import submit_vote
from qvote.engine.validator import ProposedLine


def _ballot(**amounts):
    lines = [SimpleNamespace(option_id=k, amount=v) for k, v in amounts.items()]
    return SimpleNamespace(lines=lines)


def _event(titles=("A", "B"), credits=100, voting_mode="individual"):
    options = [SimpleNamespace(id=t, title=t, description=None, image_url=None, url=None) for t in titles]
    return SimpleNamespace(
        id="ev1",
        slug=None,
        title="Budget",
        description=None,
        start_date="2026-05-01T09:00:00+00:00",
        end_date="2026-05-03T18:00:00+00:00",
        credits_per_voter=credits,
        voting_mode=voting_mode,
        auth_mode="token" if voting_mode == "individual" else "social",
        options=options,
    )


def _by_option(entries):
    return {e.option_id: e.votes for e in entries}


def test_hidden_preferences_three_ballots():
    snapshot = compute_results(_event(), [_ballot(A=3, B=0), _ballot(A=0, B=2), _ballot(A=1, B=1)])

    totals = {r.id: r.total_votes for r in snapshot.results}
    assert totals == {"A": 4, "B": 3}

    hidden = snapshot.hidden_preferences
    assert _by_option(hidden.single_vote_results) == {"A": 2, "B": 1}
    assert _by_option(hidden.hidden_votes) == {"A": 2, "B": 2}
    assert hidden.total_hidden_votes == 4
    assert hidden.total_qv_votes == 7


def test_top_choice_tie_goes_to_first_in_display_order():
    assert top_choice({"A": 2, "B": 2}, ["A", "B"]) == "A"
    assert top_choice({"A": 2, "B": 2}, ["B", "A"]) == "B"
    assert top_choice({"A": 0, "B": 0}, ["A", "B"]) is None
    assert top_choice({}, ["A"]) is None


def test_per_option_totals_costs_and_voter_counts():
    snapshot = compute_results(_event(), [_ballot(A=3, B=2), _ballot(A=1), _ballot(B=0, A=4)])
    by_id = {r.id: r for r in snapshot.results}

    assert by_id["A"].total_votes == 8
    assert by_id["A"].total_cost == 9 + 1 + 16
    assert by_id["A"].voter_count == 3
    assert by_id["B"].total_votes == 2
    assert by_id["B"].total_cost == 4
    assert by_id["B"].voter_count == 1


def test_results_keep_display_order_and_single_votes_sorted_descending():
    snapshot = compute_results(_event(("A", "B", "C")), [_ballot(C=2), _ballot(C=1), _ballot(B=1)])
    assert [r.id for r in snapshot.results] == ["A", "B", "C"]
    assert [e.option_id for e in snapshot.hidden_preferences.single_vote_results] == ["C", "B", "A"]


def test_hidden_votes_omit_options_without_hidden_support():
    snapshot = compute_results(_event(), [_ballot(A=3), _ballot(A=2)])
    assert snapshot.hidden_preferences.hidden_votes[0].option_id == "A"
    assert snapshot.hidden_preferences.hidden_votes[0].votes == 3
    assert len(snapshot.hidden_preferences.hidden_votes) == 1


def test_distribution_counts_missing_and_zero_lines_as_zero_bucket():
    snapshot = compute_results(_event(), [_ballot(A=2), _ballot(A=2, B=0), _ballot(B=1)])
    dist = {d.option_id: [(e.votes, e.count) for e in d.distribution] for d in snapshot.distributions}
    assert dist["A"] == [(0, 1), (2, 2)]
    assert dist["B"] == [(0, 2), (1, 1)]


def test_statistics():
    snapshot = compute_results(_event(), [_ballot(A=3, B=2), _ballot(A=5)], issued_tokens=4)
    stats = snapshot.statistics
    assert stats.total_participants == 2
    assert stats.total_credits_used == 13 + 25
    assert stats.total_credits_available == 200
    assert stats.average_credits_used == 19.0
    assert stats.participation_rate == 50.0


def test_participation_rate_is_zero_for_social_events_and_without_tokens():
    social = compute_results(_event(voting_mode="google"), [_ballot(A=1)], issued_tokens=10)
    assert social.statistics.participation_rate == 0.0
    tokenless = compute_results(_event(), [_ballot(A=1)], issued_tokens=0)
    assert tokenless.statistics.participation_rate == 0.0


def test_no_ballots():
    snapshot = compute_results(_event(), [])
    assert all(r.total_votes == 0 for r in snapshot.results)
    assert snapshot.statistics.total_participants == 0
    assert snapshot.statistics.average_credits_used == 0.0
    assert snapshot.hidden_preferences.hidden_votes == []
    assert all(d.distribution == [] for d in snapshot.distributions)


def test_conservation_over_random_ballot_sets():
    rng = random.Random(1234)
    titles = ("A", "B", "C", "D")
    for _ in range(50):
        ballots = [
            _ballot(**{t: rng.randint(0, 5) for t in titles if rng.random() < 0.7})
            for _ in range(rng.randint(0, 20))
        ]
        snapshot = compute_results(_event(titles), ballots)

        cast = sum(line.amount for b in ballots for line in b.lines)
        assert sum(r.total_votes for r in snapshot.results) == cast

        hidden = snapshot.hidden_preferences
        single = sum(e.votes for e in hidden.single_vote_results)
        assert hidden.total_qv_votes == single + hidden.total_hidden_votes
        assert hidden.total_qv_votes == cast

        for d in snapshot.distributions:
            assert sum(e.count for e in d.distribution) == len(ballots)


def test_aggregate_reads_committed_ballots(db, make_event, make_token, ids):
    event = make_event(titles=("A", "B"), slug="budget-2026")
    o = ids(event)
    tokens = [make_token(event) for _ in range(4)]
    submit_vote(db, event, Credentials(token=tokens[0]), [ProposedLine(o["A"], 3), ProposedLine(o["B"], 0)])
    submit_vote(db, event, Credentials(token=tokens[1]), [ProposedLine(o["B"], 2)])
    submit_vote(db, event, Credentials(token=tokens[2]), [ProposedLine(o["A"], 1), ProposedLine(o["B"], 1)])

    snapshot = aggregate(db, "budget-2026")

    assert snapshot.event.id == event.id
    assert {r.title: r.total_votes for r in snapshot.results} == {"A": 4, "B": 3}
    assert snapshot.statistics.total_participants == 3
    assert snapshot.statistics.participation_rate == 75.0
    assert snapshot.hidden_preferences.total_hidden_votes == 4


def test_results_read_while_settlement_holds_write_lock(session_factory, make_event, make_token):
    event = make_event()
    token = make_token(event)

    writer = session_factory()
    begin_write(writer)
    writer.execute(update(AccessToken).where(AccessToken.token == token).values(is_used=True))
    outcome = {}

    def _read():
        reader = session_factory()
        try:
            outcome["snapshot"] = aggregate(reader, event.id)
        except Exception as exc:
            outcome["error"] = exc
        finally:
            reader.close()

    try:
        thread = threading.Thread(target=_read)
        thread.start()
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert "error" not in outcome
        assert outcome["snapshot"].statistics.total_participants == 0
    finally:
        writer.rollback()
        writer.close()


def test_aggregate_reads_one_snapshot(db, session_factory, make_event, make_token, ids, monkeypatch):
    event = make_event(titles=("A", "B"))
    o = ids(event)
    first, second = make_token(event), make_token(event)
    submit_vote(db, event, Credentials(token=first), [ProposedLine(o["A"], 2)])

    real_load_ballots = results_module.load_ballots

    def _load_ballots_while_another_voter_settles(session, event_id):
        writer = session_factory()
        try:
            writer.add(AccessToken(event_id=event_id, token=secrets.token_urlsafe(16)))
            fresh = load_event(writer, event_id)
            submit_vote(writer, fresh, Credentials(token=second), [ProposedLine(o["B"], 1)])
        finally:
            writer.close()
        return real_load_ballots(session, event_id)

    monkeypatch.setattr(results_module, "load_ballots", _load_ballots_while_another_voter_settles)

    reader = session_factory()
    try:
        snapshot = aggregate(reader, event.id)
    finally:
        reader.close()

    # Everything reflects the state before the concurrent commit.
    assert snapshot.statistics.total_participants == 1
    assert snapshot.statistics.participation_rate == 50.0
    assert {r.title: r.total_votes for r in snapshot.results} == {"A": 2, "B": 0}

    monkeypatch.undo()
    after = aggregate(session_factory(), event.id)
    assert after.statistics.total_participants == 2
    assert round(after.statistics.participation_rate, 2) == 66.67
