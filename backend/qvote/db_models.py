from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qvote.db import Base

TOKEN_MODE = "token"
SOCIAL_MODE = "social"

# "individual" hands out single-use access tokens; the rest sign voters in externally.
VOTING_MODES = ("individual", "google", "line", "discord")


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    slug: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    credits_per_voter: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    voting_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="individual")
    admin_token: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    options: Mapped[List["Option"]] = relationship(
        back_populates="event",
        order_by=lambda: (Option.position, Option.id),
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("credits_per_voter >= 1", name="ck_events_credits_positive"),
    )

    @property
    def auth_mode(self) -> str:
        return TOKEN_MODE if self.voting_mode == "individual" else SOCIAL_MODE


class Option(Base):
    __tablename__ = "options"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    position: Mapped[int] = mapped_column("display_order", Integer, nullable=False, default=0)

    event: Mapped[Event] = relationship(back_populates="options")

    __table_args__ = (Index("idx_options_event", "event_id"),)


class AccessToken(Base):
    __tablename__ = "access_tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(64), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    ballot: Mapped[Optional["Ballot"]] = relationship(back_populates="access_token")

    __table_args__ = (
        UniqueConstraint("event_id", "token", name="uq_access_tokens_event_token"),
    )


class Ballot(Base):
    __tablename__ = "ballots"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    access_token_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("access_tokens.id"), unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    lines: Mapped[List["BallotLine"]] = relationship(
        back_populates="ballot",
        order_by="BallotLine.id",
        cascade="all, delete-orphan",
    )
    access_token: Mapped[Optional[AccessToken]] = relationship(back_populates="ballot")

    __table_args__ = (
        # One ballot per signed-in voter per event; NULL user ids (token ballots) never collide.
        UniqueConstraint("event_id", "user_id", name="uq_ballots_event_user"),
        CheckConstraint(
            "(user_id IS NULL) <> (access_token_id IS NULL)",
            name="ck_ballots_single_identity",
        ),
        Index("idx_ballots_event", "event_id"),
    )


class BallotLine(Base):
    __tablename__ = "ballot_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ballot_id: Mapped[str] = mapped_column(
        ForeignKey("ballots.id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[str] = mapped_column(
        ForeignKey("options.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)

    ballot: Mapped[Ballot] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("ballot_id", "option_id", name="uq_ballot_lines_option"),
        CheckConstraint("amount >= 0", name="ck_ballot_lines_amount"),
    )
