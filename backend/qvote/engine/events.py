from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from qvote.db import begin_write
from qvote.db_models import Event, Option, as_utc
from qvote.engine.errors import EventNotFound
from qvote.engine.tokens import generate_admin_token
from qvote.models import EventCreate


class SlugTaken(Exception):
    pass


def load_event(db: Session, event_id_or_slug: str) -> Event:
    event = db.execute(
        select(Event)
        .options(selectinload(Event.options))
        .where(or_(Event.id == event_id_or_slug, Event.slug == event_id_or_slug))
    ).scalars().first()
    if event is None:
        raise EventNotFound(f"event {event_id_or_slug!r} does not exist")
    return event


def create_event(db: Session, payload: EventCreate) -> Event:
    event = Event(
        title=payload.title,
        description=payload.description,
        slug=payload.slug,
        start_date=as_utc(payload.start_date),
        end_date=as_utc(payload.end_date),
        credits_per_voter=payload.credits_per_voter,
        voting_mode=payload.voting_mode,
        admin_token=generate_admin_token(),
        options=[
            Option(
                title=option.title,
                description=option.description,
                url=option.url,
                image_url=option.image_url,
                position=index,
            )
            for index, option in enumerate(payload.options)
        ],
    )
    begin_write(db)
    db.add(event)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlugTaken(payload.slug) from exc
    db.refresh(event)
    return event


__all__ = ["SlugTaken", "load_event", "create_event"]
