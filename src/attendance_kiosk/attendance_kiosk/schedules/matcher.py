from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import minute_of_day, weekday_abbrev
from .model import ScheduleEntry


def find_active_entry(entries: Iterable[ScheduleEntry], *, kiosk_id: str, now: datetime) -> Optional[ScheduleEntry]:
    """Return the class running on `kiosk_id` at `now`, seconds truncated.

    Overlapping windows resolve to the earliest start, then the lowest id.
    """

    weekday = weekday_abbrev(now.date())
    minute = minute_of_day(now)

    candidates = [e for e in entries if e.kiosk_id == kiosk_id and e.covers(weekday, minute)]
    if not candidates:
        return None
    candidates.sort(key=lambda e: (minute_of_day(e.start_time), e.id))
    return candidates[0]
