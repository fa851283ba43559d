"""
Timestamp helpers - the database stores naive UTC datetimes
"""
from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time as a naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[Union[datetime, int, float, str]]) -> Optional[datetime]:
    """
    Coerce a client-supplied timestamp into naive UTC.

    Accepts datetimes (aware or naive), epoch milliseconds and ISO-8601 strings.
    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
