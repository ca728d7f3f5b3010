import os
import secrets
import tempfile
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

# Keep the module-level engine and the vote log out of the working tree.
_TMP = tempfile.mkdtemp(prefix="qvote-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP}/default.db")
os.environ.setdefault("VOTE_LOG_FILE", os.path.join(_TMP, "votes.log"))

from qvote.db import build_engine, get_db, init_db  # noqa: E402
from qvote.db_models import AccessToken, Event, Option, utcnow  # noqa: E402
from qvote.main import app  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'qvote.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    # Seeded rows stay readable after commit without another query.
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _override_db(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def _reset_limits():
    limiter = getattr(app.state, "limiter", None)
    if limiter is not None:
        limiter.reset()
    yield


@pytest.fixture
def make_event(db):
    def _make(
        titles=("A", "B", "C"),
        credits=100,
        voting_mode="individual",
        start=None,
        end=None,
        slug=None,
    ):
        now = utcnow()
        event = Event(
            title="Budget 2026",
            slug=slug,
            start_date=start or now - timedelta(days=1),
            end_date=end or now + timedelta(days=1),
            credits_per_voter=credits,
            voting_mode=voting_mode,
            admin_token="admin-secret",
            options=[Option(title=t, position=i) for i, t in enumerate(titles)],
        )
        db.add(event)
        db.commit()
        return event

    return _make


@pytest.fixture
def make_token(db):
    def _make(event, value=None):
        token = AccessToken(event_id=event.id, token=value or secrets.token_urlsafe(16))
        db.add(token)
        db.commit()
        return token.token

    return _make


@pytest.fixture
def ids():
    def _ids(event):
        return {o.title: o.id for o in event.options}

    return _ids
