"""Civil-day helpers for the fixed tracking timezone."""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from listing_tracker.config import settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC instant with millisecond precision and a ``Z`` suffix."""
    now = now or utc_now()
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def civil_date(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> str:
    """
    Calendar date (YYYY-MM-DD) of ``now`` in the fixed civil timezone.

    Naive datetimes are treated as UTC so the result never depends on the
    host timezone.
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name or settings.timezone)).date().isoformat()
