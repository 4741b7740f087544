from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import FrozenSet

from ..common.datetime_utils import minute_of_day


@dataclass(frozen=True)
class ScheduleEntry:
    """A recurring class time window bound to one kiosk (minute resolution)."""

    id: str
    course_code: str
    course_name: str
    start_time: time
    end_time: time
    days_of_week: FrozenSet[str] = field(default_factory=frozenset)
    kiosk_id: str = ""

    def covers(self, weekday: str, minute: int) -> bool:
        """True when `weekday` is scheduled and `minute` lies in [start, end] inclusive."""
        if weekday not in self.days_of_week:
            return False
        return minute_of_day(self.start_time) <= minute <= minute_of_day(self.end_time)
