from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from ..cache.repository import LocalCache
from ..core.enums import Collection, SyncStatus

logger = logging.getLogger(__name__)


def purge_previous_days(cache: LocalCache, today: date) -> int:
    """Drop logs dated before `today`. Run at process start and just after midnight, never mid-day.

    Same-day logs stay (synced or not) so duplicate detection keeps working
    offline.
    """
    unsynced = [
        e for e in cache.query_where(Collection.LOGS, sync_status=SyncStatus.PENDING) if e.date != today
    ]
    if unsynced:
        logger.warning("Day rollover drops %d logs that never reached the remote store", len(unsynced))

    removed = cache.delete_where(Collection.LOGS, lambda log: log.date != today)
    if removed:
        logger.info("Day rollover: removed %d logs not dated %s", removed, today.isoformat())
    return removed


def roll_over_day(cache: LocalCache, today: date, *, push: Optional[Callable[[], object]] = None) -> int:
    """Upload what can still be uploaded, then purge."""
    if push is not None:
        push()
    return purge_previous_days(cache, today)
