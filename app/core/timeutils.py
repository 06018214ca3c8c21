"""
Time helpers.

All datetimes are persisted in UTC. SQLite (used in tests) hands back naive
values, so everything read from the database goes through `as_utc` before
being compared with an aware datetime.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hiring_tz() -> ZoneInfo:
    """Timezone candidates are addressed in (deadlines, human-like send times)."""
    return ZoneInfo(settings.HIRING_TIMEZONE)
