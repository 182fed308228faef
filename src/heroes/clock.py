"""UTC time helpers. A calendar day is always the UTC date."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Annotated

from pydantic import AfterValidator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite; convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def today_utc(now: datetime | None = None) -> date:
    return as_utc(now).date() if now is not None else utcnow().date()


def get_monday(d: date) -> date:
    """Monday of the ISO week containing d."""
    return d - timedelta(days=d.weekday())


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
"""Response field type that always serializes with a UTC offset."""
