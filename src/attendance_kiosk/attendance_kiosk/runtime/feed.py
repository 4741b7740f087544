"""In-memory feed of what the UI collaborator should render.

The UI polls ``since(seq)`` and receives everything newer than the last
sequence number it saw.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from ..attendance.model import ScanOutcome
from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_FEED_SIZE
from ..core.enums import ReaderStatus


class EventFeed:
    def __init__(self, *, maxlen: int = DEFAULT_FEED_SIZE):
        self._lock = threading.Lock()
        self._items: Deque[dict] = deque(maxlen=maxlen)
        self._seq = 0
        self._last_activity: Optional[datetime] = None

    @property
    def last_activity(self) -> Optional[datetime]:
        return self._last_activity

    def _append(self, kind: str, payload: dict) -> dict:
        with self._lock:
            self._seq += 1
            item = {"seq": self._seq, "kind": kind, "at": now_local().isoformat(timespec="seconds"), **payload}
            self._items.append(item)
            return item

    # ScanNotifier
    def scan_outcome(self, outcome: ScanOutcome) -> None:
        self._append("scan", outcome.to_dict())

    def reset_activity(self) -> None:
        self._last_activity = now_local()

    def reader_status(self, status: ReaderStatus, path: Optional[str], detail: Optional[str] = None) -> None:
        self._append("reader", {"status": status.value, "path": path, "detail": detail})

    def sync_status(self, payload: dict) -> None:
        self._append("sync", dict(payload))

    def registration_captured(self, tag_id: str) -> None:
        self._append("registration", {"tag_id": tag_id})

    def since(self, after: int = 0) -> List[dict]:
        with self._lock:
            return [item for item in self._items if item["seq"] > after]
