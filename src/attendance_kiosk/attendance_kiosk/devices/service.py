from __future__ import annotations

import hmac
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from ..attendance.stats import KioskStats, collect_stats
from ..cache.repository import LocalCache
from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_MAX_PUSH_ATTEMPTS
from ..core.enums import DeviceStatus, SessionState
from ..core.exceptions import AccessDenied, RemoteRejected, RemoteUnavailable
from ..sync.connectivity import ConnectivityMonitor
from ..sync.remote import RemoteStore
from .model import DeviceSession, LoginResult
from .session_store import SessionStore

logger = logging.getLogger(__name__)

LOGIN_NEEDS_CONNECTIVITY = "login requires connectivity"


def _same_key(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class DeviceSessionManager:
    """Use case: which kiosk identity the sync engine and validator work under.

    LoggedOut -> Authenticating -> Active -> LoggedOut.
    """

    def __init__(
        self,
        remote: RemoteStore,
        store: SessionStore,
        connectivity: ConnectivityMonitor,
        cache: LocalCache,
        *,
        on_login: Optional[Callable[[DeviceSession], object]] = None,
        clock: Callable[[], datetime] = now_local,
        max_push_attempts: int = DEFAULT_MAX_PUSH_ATTEMPTS,
    ):
        self._remote = remote
        self._store = store
        self._connectivity = connectivity
        self._cache = cache
        self._on_login = on_login
        self._clock = clock
        self._max_push_attempts = int(max_push_attempts)

        self._lock = threading.RLock()
        self._state = SessionState.LOGGED_OUT
        self._session: Optional[DeviceSession] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[DeviceSession]:
        return self._session if self._state == SessionState.ACTIVE else None

    def kiosk_id(self) -> Optional[str]:
        session = self.session
        return session.device_id if session else None

    def stats(self) -> KioskStats:
        return collect_stats(
            self._cache,
            kiosk_id=self.kiosk_id(),
            today=self._clock().date(),
            max_push_attempts=self._max_push_attempts,
        )

    def login(self, connection_key: str) -> LoginResult:
        """Verify the key online, or resume the cached session offline.

        Raises AccessDenied when the key is refused.
        """
        key = require_non_empty(connection_key, "Connection key")
        with self._lock:
            previous = (self._state, self._session)
            self._state = SessionState.AUTHENTICATING
            try:
                if self._connectivity.online:
                    device = self._verify_online(key)
                    if device is not None:
                        return self._activate_online(device)
                return self._resume_offline(key)
            except Exception:
                # a refused attempt leaves the running session as it was
                self._state, self._session = previous
                raise
            finally:
                if self._state == SessionState.AUTHENTICATING:
                    self._state = SessionState.LOGGED_OUT

    def resume(self) -> LoginResult:
        """Startup: log back in with the durably cached session, if any."""
        cached = self._store.load()
        if cached is None:
            return LoginResult(state=SessionState.LOGGED_OUT, offline=not self._connectivity.online)
        try:
            return self.login(cached.connection_key)
        except AccessDenied as e:
            logger.warning("Cached kiosk session no longer valid (%s); clearing it", e)
            self._store.clear()
            return LoginResult(state=SessionState.LOGGED_OUT, message=str(e))

    def logout(self, connection_key: str) -> LoginResult:
        key = require_non_empty(connection_key, "Connection key")
        with self._lock:
            current = self._session or self._store.load()
            if current is None:
                self._state = SessionState.LOGGED_OUT
                return LoginResult(state=SessionState.LOGGED_OUT)

            if not self._key_accepted_for(current, key):
                raise AccessDenied("Invalid connection key")

            if self._connectivity.online:
                try:
                    self._remote.set_device_status(current.device_id, DeviceStatus.OFFLINE)
                except RemoteUnavailable as e:
                    self._connectivity.mark_offline(str(e))
                except RemoteRejected as e:
                    logger.warning("Could not mark device %s offline: %s", current.device_id, e)

            self._store.clear()
            self._session = None
            self._state = SessionState.LOGGED_OUT
            logger.info("Kiosk %s logged out", current.device_id)
            return LoginResult(state=SessionState.LOGGED_OUT, session=current)

    # ==================== helpers ====================

    def _verify_online(self, key: str) -> Optional[DeviceSession]:
        try:
            device = self._remote.verify_device(key)
        except RemoteUnavailable as e:
            self._connectivity.mark_offline(str(e))
            return None
        except RemoteRejected as e:
            logger.warning("Key verification refused: %s", e)
            raise AccessDenied("Invalid connection key") from e
        if device is None:
            raise AccessDenied("Invalid connection key")
        return device

    def _activate_online(self, device: DeviceSession) -> LoginResult:
        self._store.save(device)
        try:
            self._remote.set_device_status(device.device_id, DeviceStatus.ONLINE)
        except RemoteUnavailable as e:
            self._connectivity.mark_offline(str(e))
        except RemoteRejected as e:
            logger.warning("Could not mark device %s online: %s", device.device_id, e)

        self._session = device
        self._state = SessionState.ACTIVE
        logger.info("Kiosk %s (%s) logged in", device.device_id, device.device_name)
        if self._on_login is not None:
            self._on_login(device)
        return LoginResult(state=SessionState.ACTIVE, session=device, stats=self.stats())

    def _resume_offline(self, key: str) -> LoginResult:
        cached = self._store.load()
        if cached is None:
            logger.warning("Offline and no cached session: %s", LOGIN_NEEDS_CONNECTIVITY)
            return LoginResult(state=SessionState.LOGGED_OUT, offline=True, message=LOGIN_NEEDS_CONNECTIVITY)
        if not _same_key(cached.connection_key, key):
            raise AccessDenied("Connection key does not match this kiosk")

        self._session = cached
        self._state = SessionState.ACTIVE
        logger.info("Kiosk %s resumed offline from cached session", cached.device_id)
        return LoginResult(state=SessionState.ACTIVE, session=cached, stats=self.stats(), offline=True)

    def _key_accepted_for(self, current: DeviceSession, key: str) -> bool:
        if _same_key(current.connection_key, key):
            return True
        if not self._connectivity.online:
            return False
        try:
            device = self._remote.verify_device(key)
        except RemoteUnavailable as e:
            self._connectivity.mark_offline(str(e))
            return False
        except RemoteRejected:
            return False
        return device is not None and device.device_id == current.device_id
