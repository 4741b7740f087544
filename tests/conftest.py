from __future__ import annotations

from datetime import datetime

import pytest

from src.attendance_kiosk.attendance_kiosk.cache.sql_cache import SqlLocalCache
from src.attendance_kiosk.attendance_kiosk.database.connection import DBConfig, LocalDatabase
from src.attendance_kiosk.attendance_kiosk.sync.connectivity import ConnectivityMonitor

from fakes import FakeRemote


@pytest.fixture
def fixed_now() -> datetime:
    # Monday
    return datetime(2026, 10, 12, 9, 15, 30)


@pytest.fixture
def database():
    db = LocalDatabase(DBConfig(url="sqlite://"))
    yield db
    db.dispose()


@pytest.fixture
def cache(database) -> SqlLocalCache:
    c = SqlLocalCache(database)
    c.init_schema()
    return c


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def connectivity(remote) -> ConnectivityMonitor:
    return ConnectivityMonitor(remote, online=True)
