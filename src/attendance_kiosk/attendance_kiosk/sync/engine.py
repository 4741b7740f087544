from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set

from ..attendance.model import AttendanceLogEntry
from ..cache.repository import LocalCache
from ..core.constants import DEFAULT_CHANGE_DEBOUNCE_SECONDS, DEFAULT_MAX_PUSH_ATTEMPTS
from ..core.enums import Collection, SyncStatus
from ..core.exceptions import RemoteRejected, RemoteUnavailable
from ..identities.merge import merge_identities
from .connectivity import ConnectivityMonitor
from .remote import LogKey, RemoteStore
from .single_flight import CoalescingRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullResult:
    performed: bool
    identities: int = 0
    schedules: int = 0
    skipped_reason: Optional[str] = None


@dataclass(frozen=True)
class PushResult:
    performed: bool
    uploaded: int = 0
    still_pending: int = 0
    newly_stuck: List[int] = field(default_factory=list)
    skipped_reason: Optional[str] = None


class SyncEngine:
    """Pull (refresh the mirror) and Push (upload pending logs).

    Pull and Push may overlap each other (they touch disjoint collections)
    but each one is single-flight: triggers that arrive while one is running
    are coalesced into one re-run.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteStore,
        connectivity: ConnectivityMonitor,
        *,
        kiosk_id: Callable[[], Optional[str]],
        max_push_attempts: int = DEFAULT_MAX_PUSH_ATTEMPTS,
        debounce_seconds: float = DEFAULT_CHANGE_DEBOUNCE_SECONDS,
        on_status: Optional[Callable[[dict], None]] = None,
    ):
        self._cache = cache
        self._remote = remote
        self._connectivity = connectivity
        self._kiosk_id = kiosk_id
        self._max_push_attempts = int(max_push_attempts)
        self._debounce_seconds = float(debounce_seconds)
        self._on_status = on_status

        self._pull_lock = threading.Lock()
        self._push_lock = threading.Lock()
        self._pull_runner = CoalescingRunner("pull", self.pull)
        self._push_runner = CoalescingRunner("push", self.push)

        self._debounce_lock = threading.Lock()
        self._debounce_timer: Optional[threading.Timer] = None

    @property
    def max_push_attempts(self) -> int:
        return self._max_push_attempts

    # ==================== triggers ====================

    def request_pull(self) -> bool:
        return self._pull_runner.request()

    def request_push(self) -> bool:
        return self._push_runner.request()

    def notify_remote_change(self, collection: Optional[str] = None) -> None:
        """Debounce a change notification into a single Pull request."""
        logger.debug("Remote change notification (%s)", collection or "any")
        with self._debounce_lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
            timer = threading.Timer(self._debounce_seconds, self._fire_debounced)
            timer.daemon = True
            self._debounce_timer = timer
            timer.start()

    def _fire_debounced(self) -> None:
        with self._debounce_lock:
            self._debounce_timer = None
        self.request_pull()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        return self._pull_runner.wait_idle(timeout) and self._push_runner.wait_idle(timeout)

    def shutdown(self) -> None:
        with self._debounce_lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None

    # ==================== pull ====================

    def pull(self, kiosk_id: Optional[str] = None) -> PullResult:
        """Replace identities and schedules with the remote sets in one transaction.

        A failed fetch leaves the cache untouched.
        """
        kiosk_id = kiosk_id or self._kiosk_id()
        if kiosk_id is None:
            return PullResult(performed=False, skipped_reason="no active session")
        if not self._connectivity.online:
            return PullResult(performed=False, skipped_reason="offline")

        with self._pull_lock:
            try:
                identities = self._remote.fetch_identities()
                schedules = self._remote.fetch_schedules()
            except RemoteUnavailable as e:
                self._connectivity.mark_offline(str(e))
                return PullResult(performed=False, skipped_reason="offline")
            except RemoteRejected as e:
                logger.error("Pull refused by remote store: %s", e)
                return PullResult(performed=False, skipped_reason=str(e))

            # merge reads the cached identities inside the same transaction
            self._cache.replace_all(
                {Collection.IDENTITIES: identities, Collection.SCHEDULES: schedules},
                merge={Collection.IDENTITIES: merge_identities},
            )

        self._connectivity.mark_online()
        logger.info("Pull complete for kiosk %s: %d identities, %d schedules", kiosk_id, len(identities), len(schedules))
        result = PullResult(performed=True, identities=len(identities), schedules=len(schedules))
        self._emit({"op": "pull", "identities": result.identities, "schedules": result.schedules})
        return result

    # ==================== push ====================

    def pending_logs(self) -> List[AttendanceLogEntry]:
        pending = self._cache.query_where(Collection.LOGS, sync_status=SyncStatus.PENDING)
        return [e for e in pending if not e.is_stuck(self._max_push_attempts)]

    def push(self) -> PushResult:
        """Upload pending logs; flip to synced only what the remote confirmed."""
        if not self._connectivity.online:
            return PushResult(performed=False, skipped_reason="offline")

        with self._push_lock:
            pending = self.pending_logs()
            if not pending:
                return PushResult(performed=True)

            newly_stuck: List[int] = []
            reachable = True
            try:
                confirmed = self._remote.upsert_logs(pending)
                unconfirmed = [e for e in pending if e.key not in confirmed]
                newly_stuck += self._count_failures(unconfirmed, "not confirmed by remote")
            except RemoteUnavailable as e:
                self._connectivity.mark_offline(str(e))
                return PushResult(performed=False, still_pending=len(pending), skipped_reason="offline")
            except RemoteRejected as e:
                logger.warning("Batch upload of %d logs refused (%s); retrying one by one", len(pending), e)
                confirmed, stuck, reachable = self._push_individually(pending)
                newly_stuck += stuck

            synced_ids = [e.local_id for e in pending if e.key in confirmed]
            self._cache.update_many(Collection.LOGS, synced_ids, sync_status=SyncStatus.SYNCED, last_error=None)

        if reachable:
            self._connectivity.mark_online()
        still_pending = len(pending) - len(synced_ids)
        logger.info("Push complete: %d uploaded, %d still pending", len(synced_ids), still_pending)
        result = PushResult(performed=True, uploaded=len(synced_ids), still_pending=still_pending, newly_stuck=newly_stuck)
        self._emit({"op": "push", "uploaded": result.uploaded, "pending": still_pending, "stuck": len(newly_stuck)})
        return result

    def _push_individually(self, pending: Sequence[AttendanceLogEntry]):
        confirmed: Set[LogKey] = set()
        stuck: List[int] = []
        reachable = True
        for entry in pending:
            try:
                keys = self._remote.upsert_logs([entry])
            except RemoteUnavailable as e:
                self._connectivity.mark_offline(str(e))
                reachable = False
                break
            except RemoteRejected as e:
                stuck += self._count_failures([entry], str(e))
                continue
            if entry.key in keys:
                confirmed.add(entry.key)
            else:
                stuck += self._count_failures([entry], "not confirmed by remote")
        return confirmed, stuck, reachable

    def _count_failures(self, entries: Sequence[AttendanceLogEntry], error: str) -> List[int]:
        """Bump push_attempts; return local ids that just reached the retry limit."""
        stuck = []
        for entry in entries:
            attempts = entry.push_attempts + 1
            self._cache.update_many(Collection.LOGS, [entry.local_id], push_attempts=attempts, last_error=error)
            if attempts >= self._max_push_attempts:
                logger.error(
                    "Log %s (%s/%s/%s) stuck after %d attempts: %s",
                    entry.local_id,
                    entry.external_id,
                    entry.course_code,
                    entry.date,
                    attempts,
                    error,
                )
                stuck.append(entry.local_id)
        return stuck

    def retry_stuck(self) -> int:
        """Give stuck logs a fresh retry budget. Returns how many were reset."""
        stuck = [
            e.local_id
            for e in self._cache.query_where(Collection.LOGS, sync_status=SyncStatus.PENDING)
            if e.is_stuck(self._max_push_attempts)
        ]
        self._cache.update_many(Collection.LOGS, stuck, push_attempts=0)
        if stuck:
            logger.info("Reset retry budget of %d stuck logs", len(stuck))
            self.request_push()
        return len(stuck)

    def _emit(self, payload: dict) -> None:
        if self._on_status is not None:
            self._on_status(payload)
