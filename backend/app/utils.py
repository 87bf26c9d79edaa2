"""Small shared helpers."""
from datetime import datetime

import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def as_utc(value: datetime) -> datetime:
    """Make ``value`` timezone-aware UTC; naive values are taken to be UTC already.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)`` columns.
    """
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)
