"""Messages posted to the kiosk loop.

Every producer (reader thread, scheduler, HTTP handlers, connectivity
monitor) posts one of these onto the loop queue; only the loop thread
acts on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import ReaderStatus


@dataclass(frozen=True)
class ScanReceived:
    token: str


@dataclass(frozen=True)
class ReaderStatusChanged:
    status: ReaderStatus
    path: Optional[str] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class TimerTick:
    job: str  # "pull" | "push" | "probe" | "rollover"


@dataclass(frozen=True)
class RemoteChanged:
    table: Optional[str] = None


@dataclass(frozen=True)
class ConnectivityChanged:
    online: bool


@dataclass(frozen=True)
class ResyncRequested:
    pass


@dataclass(frozen=True)
class Shutdown:
    pass


PULL_JOB = "pull"
PUSH_JOB = "push"
PROBE_JOB = "probe"
ROLLOVER_JOB = "rollover"
