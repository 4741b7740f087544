from __future__ import annotations

import logging
import threading
from typing import Callable, List

from .remote import RemoteStore

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks whether the remote store is reachable.

    Listeners are called with the new value on every offline/online
    transition, whatever caused it (probe, failed call, successful call).
    """

    def __init__(self, remote: RemoteStore, *, online: bool = False):
        self._remote = remote
        self._online = online
        self._lock = threading.Lock()
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, listener: Callable[[bool], None]) -> None:
        self._listeners.append(listener)

    def probe(self) -> bool:
        self._set(self._remote.ping(), "probe")
        return self._online

    def mark_online(self) -> None:
        self._set(True, "remote call succeeded")

    def mark_offline(self, reason: str) -> None:
        self._set(False, reason)

    def _set(self, value: bool, reason: str) -> None:
        with self._lock:
            changed = value != self._online
            self._online = value
        if not changed:
            return
        if value:
            logger.info("Remote store reachable again (%s)", reason)
        else:
            logger.warning("Remote store unreachable: %s", reason)
        for listener in list(self._listeners):
            listener(value)
