from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from ..core.constants import WEEKDAY_ABBREVIATIONS


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def weekday_abbrev(value: date) -> str:
    """Three-letter English weekday for a date ("Mon" .. "Sun")."""
    return WEEKDAY_ABBREVIATIONS[value.weekday()]


def normalize_weekday(value: str) -> Optional[str]:
    """Map "monday", "MON", "Mon." ... to "Mon". Unknown spellings give None."""
    cleaned = (value or "").strip().strip(".")[:3].title()
    return cleaned if cleaned in WEEKDAY_ABBREVIATIONS else None


def parse_clock(value: Any) -> Optional[time]:
    """Normalize a remote TIME value to minute resolution.

    The remote store can hand back TIME as:
    - datetime.time
    - datetime.timedelta
    - string (e.g. '08:30' or '08:30:00')

    Seconds are always truncated.
    """

    if value is None:
        return None

    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    if isinstance(value, timedelta):
        total_seconds = int(value.total_seconds()) % 86400
        return time(hour=total_seconds // 3600, minute=(total_seconds % 3600) // 60)

    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"Invalid time string: {value!r}")
        return time(hour=int(parts[0]), minute=int(parts[1][:2]))

    raise TypeError(f"Unsupported TIME value type: {type(value)!r}")


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def minute_of_day(value: time | datetime) -> int:
    return value.hour * 60 + value.minute
