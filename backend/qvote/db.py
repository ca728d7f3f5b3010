from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase

from qvote.core.settings import get_settings


class Base(DeclarativeBase):
    pass


def _configure_sqlite(engine: Engine) -> None:
    # WAL lets readers keep their snapshot while a writer holds the lock.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    # Reads begin deferred; writers opt into the write lock up front via begin_write().
    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get("immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # check_same_thread=False is required for SQLite when using threads (Uvicorn workers)
        engine = create_engine(
            url, connect_args={"check_same_thread": False, "timeout": 30}
        )
        _configure_sqlite(engine)
        return engine
    return create_engine(url, pool_pre_ping=True)


def begin_write(db: Session) -> None:
    """
    Start a fresh transaction on ``db`` that holds the SQLite write lock from its first
    statement. Any read transaction still open on the session is committed first.
    Other backends ignore the option and rely on row locks and constraints.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={"immediate": True})


engine = build_engine(get_settings().database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    import qvote.db_models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=bind)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
