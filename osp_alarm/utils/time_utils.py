# osp_alarm/utils/time_utils.py
"""Instant helpers. Everything is stored and compared as naive UTC."""

from datetime import datetime, timezone
from typing import Optional


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_instant(value) -> Optional[datetime]:
    """Parse an ISO-8601 string (trailing Z allowed) or datetime into naive UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return to_naive_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
