"""
Timezone utilities for the Thrive scheduling backend.

All scheduling data is stored and compared in UTC. SQLite drops tzinfo on
read, so values coming back from the database go through ``as_utc`` before
being compared with aware datetimes.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_utc_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 string (``Z`` suffix allowed) or datetime into aware UTC.

    Raises:
        ValueError: If the string is not a valid ISO-8601 timestamp
    """
    if isinstance(value, datetime):
        return as_utc(value)  # type: ignore[return-value]
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))  # type: ignore[return-value]


def start_of_day(day: Union[date, datetime]) -> datetime:
    """00:00:00 UTC on the given calendar day."""
    if isinstance(day, datetime):
        day = as_utc(day).date()  # type: ignore[union-attr]
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: Union[date, datetime]) -> datetime:
    """23:59:59.999 UTC on the given calendar day."""
    return start_of_day(day).replace(hour=23, minute=59, second=59, microsecond=999000)


def isoformat_z(value: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    utc_value = as_utc(value)
    assert utc_value is not None
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"
