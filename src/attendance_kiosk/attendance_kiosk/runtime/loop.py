"""Single consumer of kiosk events.

Scans, timer ticks and change notifications are posted from many threads
but acted on here, one at a time, so validation of one scan finishes
(through Commit) before the next token is looked at.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

from ..attendance.validator import AttendanceValidator
from ..core.exceptions import StorageError
from ..identities.registration import CardRegistration
from ..sync.connectivity import ConnectivityMonitor
from ..sync.engine import SyncEngine
from .events import (
    PROBE_JOB,
    PULL_JOB,
    PUSH_JOB,
    ROLLOVER_JOB,
    ConnectivityChanged,
    ReaderStatusChanged,
    RemoteChanged,
    ResyncRequested,
    ScanReceived,
    Shutdown,
    TimerTick,
)
from .feed import EventFeed

logger = logging.getLogger(__name__)


class KioskLoop:
    def __init__(
        self,
        validator: AttendanceValidator,
        sync: SyncEngine,
        connectivity: ConnectivityMonitor,
        feed: EventFeed,
        *,
        is_active: Callable[[], bool],
        on_rollover: Optional[Callable[[], object]] = None,
        registration: Optional[CardRegistration] = None,
    ):
        self._validator = validator
        self._sync = sync
        self._connectivity = connectivity
        self._feed = feed
        self._is_active = is_active
        self._on_rollover = on_rollover
        self._registration = registration

        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def post(self, event: object) -> None:
        self._queue.put(event)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="kiosk-loop", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self.post(Shutdown())
        self._thread.join(timeout=timeout)
        self._thread = None

    def process_pending(self) -> int:
        """Drain the queue on the calling thread. Returns how many events were handled."""
        handled = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return handled
            if isinstance(event, Shutdown):
                return handled
            self.dispatch(event)
            handled += 1

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if isinstance(event, Shutdown):
                logger.info("Kiosk loop stopped")
                return
            self.dispatch(event)

    def dispatch(self, event: object) -> None:
        try:
            self._handle(event)
        except StorageError as e:
            logger.error("Local cache failure while handling %s: %s", type(event).__name__, e)

    def _handle(self, event: object) -> None:
        if isinstance(event, ScanReceived):
            self._on_scan(event.token)
        elif isinstance(event, ReaderStatusChanged):
            self._feed.reader_status(event.status, event.path, event.detail)
        elif isinstance(event, TimerTick):
            self._on_tick(event.job)
        elif isinstance(event, RemoteChanged):
            if self._is_active():
                self._sync.notify_remote_change(event.table)
        elif isinstance(event, ConnectivityChanged):
            self._feed.sync_status({"op": "connectivity", "online": event.online})
            if event.online and self._is_active():
                self._sync.request_push()
                self._sync.request_pull()
        elif isinstance(event, ResyncRequested):
            self._sync.request_pull()
            self._sync.request_push()
        else:
            logger.warning("Unknown kiosk event %r", event)

    def _on_scan(self, token: str) -> None:
        if self._registration is not None and self._registration.armed:
            tag = self._registration.capture(token)
            if tag:
                self._feed.registration_captured(tag)
                return
        self._validator.process(token)

    def _on_tick(self, job: str) -> None:
        if job == PROBE_JOB:
            self._connectivity.probe()
        elif job == ROLLOVER_JOB:
            if self._on_rollover is not None:
                self._on_rollover()
        elif not self._is_active():
            return
        elif job == PULL_JOB:
            self._sync.request_pull()
        elif job == PUSH_JOB:
            self._sync.request_push()
