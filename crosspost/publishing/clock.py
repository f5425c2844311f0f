"""
UTC time helpers. SQLite hands datetimes back naive; they are stored as UTC.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_future(value: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if value is None:
        return False
    return as_utc(value) > (now or utcnow())


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None
