from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List

from ..cache.repository import LocalCache
from ..common.datetime_utils import format_clock
from ..core.enums import Collection, SyncStatus


@dataclass(frozen=True)
class KioskStats:
    """Counts shown on the kiosk idle screen, computed from the local cache only."""

    identities: int
    pending_uploads: int
    stuck_uploads: int
    logged_today: int
    schedules: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "identities": self.identities,
            "pending_uploads": self.pending_uploads,
            "stuck_uploads": self.stuck_uploads,
            "logged_today": self.logged_today,
            "schedules": list(self.schedules),
        }


def collect_stats(cache: LocalCache, *, kiosk_id: str | None, today: date, max_push_attempts: int) -> KioskStats:
    pending = cache.query_where(Collection.LOGS, sync_status=SyncStatus.PENDING)
    stuck = sum(1 for e in pending if e.is_stuck(max_push_attempts))

    schedules = []
    if kiosk_id is not None:
        for s in cache.query_where(Collection.SCHEDULES, kiosk_id=kiosk_id):
            schedules.append(
                {
                    "course_code": s.course_code,
                    "course_name": s.course_name,
                    "time": f"{format_clock(s.start_time)}-{format_clock(s.end_time)}",
                    "days": sorted(s.days_of_week),
                }
            )
        schedules.sort(key=lambda x: (x["time"], x["course_code"]))

    return KioskStats(
        identities=cache.count_where(Collection.IDENTITIES),
        pending_uploads=len(pending) - stuck,
        stuck_uploads=stuck,
        logged_today=cache.count_where(Collection.LOGS, date=today),
        schedules=schedules,
    )
