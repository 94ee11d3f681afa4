from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId


# PUBLIC_INTERFACE
def new_object_id() -> str:
    """Return a fresh 24-character hex identifier."""
    return str(ObjectId())


# PUBLIC_INTERFACE
def parse_object_id(value: Optional[str]) -> Optional[str]:
    """
    Normalize an identifier string.

    Returns the lower-cased hex form, or None when the value is not a valid
    24-character hex ObjectId.
    """
    if not value or not ObjectId.is_valid(value):
        return None
    return str(ObjectId(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
