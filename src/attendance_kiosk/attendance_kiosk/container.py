from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .attendance.rollover import roll_over_day
from .attendance.validator import AttendanceValidator
from .cache.sql_cache import SqlLocalCache
from .common.datetime_utils import now_local
from .core import constants
from .core.enums import SessionState
from .database.connection import DBConfig, LocalDatabase
from .devices.model import LoginResult
from .devices.service import DeviceSessionManager
from .devices.session_store import JsonFileSessionStore, SessionStore
from .hardware.connection import ConnectionManager, Opener
from .identities.registration import CardRegistration
from .identities.service import IdentityService
from .runtime.events import ConnectivityChanged
from .runtime.feed import EventFeed
from .runtime.loop import KioskLoop
from .runtime.scheduler import build_scheduler
from .sync.connectivity import ConnectivityMonitor
from .sync.engine import SyncEngine
from .sync.postgrest_remote import PostgrestRemoteStore
from .sync.remote import RemoteStore
from .sync.single_flight import CoalescingRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KioskContext:
    database: LocalDatabase
    cache: SqlLocalCache
    remote: RemoteStore
    session_store: SessionStore

    connectivity: ConnectivityMonitor
    feed: EventFeed
    sync: SyncEngine
    devices: DeviceSessionManager
    identities: IdentityService
    registration: CardRegistration
    validator: AttendanceValidator
    loop: KioskLoop
    reader: ConnectionManager
    scheduler: BackgroundScheduler
    day_rollover: CoalescingRunner

    reader_port: Optional[str]
    clock: Callable[[], datetime]

    def rollover(self) -> int:
        push = self.sync.push if self.connectivity.online else None
        return roll_over_day(self.cache, self.clock().date(), push=push)

    def start(self, *, connect_reader: bool = True, run_scheduler: bool = True) -> LoginResult:
        self.cache.init_schema()
        self.connectivity.probe()
        self.rollover()
        resumed = self.devices.resume()
        self.loop.start()
        if run_scheduler:
            self.scheduler.start()
        if connect_reader and self.reader_port:
            self.reader.connect(self.reader_port)
        logger.info(
            "Kiosk started (session=%s, online=%s, reader=%s)",
            resumed.state.value,
            self.connectivity.online,
            self.reader.state.value,
        )
        return resumed

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.reader.close()
        self.loop.stop()
        self.day_rollover.wait_idle(timeout=10)
        self.sync.shutdown()
        self.sync.wait_idle(timeout=10)
        self.database.dispose()
        logger.info("Kiosk stopped")


def _setting(settings: Any, name: str, default: Any) -> Any:
    value = getattr(settings, name, None)
    return default if value is None else value


def build_context(
    settings: Any,
    *,
    remote: Optional[RemoteStore] = None,
    session_store: Optional[SessionStore] = None,
    opener: Optional[Opener] = None,
    clock: Callable[[], datetime] = now_local,
) -> KioskContext:
    remote_config = _setting(settings, "REMOTE_CONFIG", {})
    reader_config = _setting(settings, "READER_CONFIG", {})
    sync_config = _setting(settings, "SYNC_CONFIG", {})

    max_push_attempts = int(sync_config.get("max_push_attempts", constants.DEFAULT_MAX_PUSH_ATTEMPTS))

    database = LocalDatabase(DBConfig(url=str(_setting(settings, "LOCAL_DB_URL", "sqlite:///kiosk_cache.db"))))
    cache = SqlLocalCache(database)
    if remote is None:
        remote = PostgrestRemoteStore(
            str(remote_config.get("url", "")),
            str(remote_config.get("api_key", "")),
            timeout=float(remote_config.get("timeout", constants.DEFAULT_REMOTE_TIMEOUT_SECONDS)),
        )
    if session_store is None:
        session_store = JsonFileSessionStore(_setting(settings, "SESSION_FILE", "kiosk_session.json"))

    connectivity = ConnectivityMonitor(remote)
    feed = EventFeed()

    # sync and devices refer to each other through these late-bound lambdas
    sync = SyncEngine(
        cache,
        remote,
        connectivity,
        kiosk_id=lambda: devices.kiosk_id(),
        max_push_attempts=max_push_attempts,
        debounce_seconds=float(sync_config.get("change_debounce_seconds", constants.DEFAULT_CHANGE_DEBOUNCE_SECONDS)),
        on_status=feed.sync_status,
    )
    devices = DeviceSessionManager(
        remote,
        session_store,
        connectivity,
        cache,
        on_login=lambda _device: sync.request_pull(),
        clock=clock,
        max_push_attempts=max_push_attempts,
    )
    validator = AttendanceValidator(
        cache,
        session=lambda: devices.session,
        notifier=feed,
        request_push=sync.request_push,
        is_online=lambda: connectivity.online,
        clock=clock,
        repeat_window_seconds=float(_setting(settings, "SCAN_REPEAT_WINDOW_SECONDS", constants.SCAN_REPEAT_WINDOW_SECONDS)),
        require_face_match=bool(_setting(settings, "REQUIRE_FACE_MATCH", False)),
    )

    is_active = lambda: devices.state == SessionState.ACTIVE
    registration = CardRegistration(remote, connectivity, is_active=is_active, request_pull=sync.request_pull)
    # push then purge on a worker thread, never on the loop
    day_rollover = CoalescingRunner(
        "rollover",
        lambda: roll_over_day(cache, clock().date(), push=sync.push if connectivity.online else None),
    )

    loop = KioskLoop(
        validator,
        sync,
        connectivity,
        feed,
        is_active=is_active,
        on_rollover=day_rollover.request,
        registration=registration,
    )
    connectivity.subscribe(lambda online: loop.post(ConnectivityChanged(online)))

    reader = ConnectionManager(
        loop.post,
        baudrate=int(reader_config.get("baud_rate", constants.DEFAULT_BAUD_RATE)),
        opener=opener,
    )
    scheduler = build_scheduler(
        loop.post,
        pull_seconds=int(sync_config.get("pull_interval_seconds", constants.DEFAULT_PULL_INTERVAL_SECONDS)),
        push_seconds=int(sync_config.get("push_interval_seconds", constants.DEFAULT_PUSH_INTERVAL_SECONDS)),
        probe_seconds=int(sync_config.get("probe_interval_seconds", constants.DEFAULT_CONNECTIVITY_PROBE_SECONDS)),
    )

    context = KioskContext(
        database=database,
        cache=cache,
        remote=remote,
        session_store=session_store,
        connectivity=connectivity,
        feed=feed,
        sync=sync,
        devices=devices,
        identities=IdentityService(cache),
        registration=registration,
        validator=validator,
        loop=loop,
        reader=reader,
        scheduler=scheduler,
        day_rollover=day_rollover,
        reader_port=reader_config.get("port") or None,
        clock=clock,
    )
    return context
