"""Timestamp helpers.

Stored datetimes may come back naive depending on the provider; every
comparison in the context goes through ``as_utc`` first.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def has_elapsed(deadline: datetime | None, as_of: datetime) -> bool:
    """True when ``deadline`` is set and is at or before ``as_of``."""
    if deadline is None:
        return False
    return as_utc(deadline) <= as_utc(as_of)
