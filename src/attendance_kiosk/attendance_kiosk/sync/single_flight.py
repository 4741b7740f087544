from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CoalescingRunner:
    """Run `fn` on a worker thread with at most one run in flight.

    A request arriving while a run is in flight is folded into a single
    pending re-run; any number of such requests yield exactly one re-run.
    An in-flight run is never aborted.
    """

    def __init__(self, name: str, fn: Callable[[], object]):
        self._name = name
        self._fn = fn
        self._cond = threading.Condition()
        self._running = False
        self._rerun = False
        self._runs = 0

    @property
    def runs(self) -> int:
        return self._runs

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._running

    def request(self) -> bool:
        """Start a run, or mark one pending. True when a new worker was started."""
        with self._cond:
            if self._running:
                self._rerun = True
                return False
            self._running = True
        threading.Thread(target=self._work, name=f"kiosk-{self._name}", daemon=True).start()
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: not self._running, timeout=timeout)

    def _work(self) -> None:
        while True:
            try:
                self._fn()
            except Exception:
                logger.exception("%s cycle failed; will retry on next trigger", self._name)
            with self._cond:
                self._runs += 1
                if self._rerun:
                    self._rerun = False
                    continue
                self._running = False
                self._cond.notify_all()
                return
