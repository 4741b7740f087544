from __future__ import annotations

import sys
from pathlib import Path

import importlib

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.attendance_kiosk.attendance_kiosk.attendance.rollover import purge_previous_days
from src.attendance_kiosk.attendance_kiosk.attendance.stats import collect_stats
from src.attendance_kiosk.attendance_kiosk.cache.sql_cache import SqlLocalCache
from src.attendance_kiosk.attendance_kiosk.common.datetime_utils import now_local
from src.attendance_kiosk.attendance_kiosk.database.connection import DBConfig, LocalDatabase


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    database = LocalDatabase(DBConfig(url=settings.LOCAL_DB_URL))
    cache = SqlLocalCache(database)
    cache.init_schema()

    today = now_local().date()
    removed = purge_previous_days(cache, today)
    stats = collect_stats(
        cache,
        kiosk_id=None,
        today=today,
        max_push_attempts=int(settings.SYNC_CONFIG["max_push_attempts"]),
    )
    print(
        f"OK: cache ready at {database.url} "
        f"(identities={stats.identities}, pending={stats.pending_uploads}, "
        f"stuck={stats.stuck_uploads}, purged={removed})"
    )
    database.dispose()


if __name__ == "__main__":
    main()
