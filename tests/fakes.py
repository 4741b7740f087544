from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, time
from typing import Dict, List, Optional, Sequence, Set

from src.attendance_kiosk.attendance_kiosk.attendance.model import AttendanceLogEntry
from src.attendance_kiosk.attendance_kiosk.core.enums import DeviceStatus, TagLink
from src.attendance_kiosk.attendance_kiosk.core.exceptions import RemoteRejected, RemoteUnavailable, UnknownIdentity
from src.attendance_kiosk.attendance_kiosk.devices.model import DeviceSession
from src.attendance_kiosk.attendance_kiosk.identities.model import Identity
from src.attendance_kiosk.attendance_kiosk.schedules.model import ScheduleEntry


def make_identity(external_id: str, tag_id: str, courses=("CS101",), **kw) -> Identity:
    return Identity(
        id=kw.pop("id", f"id-{external_id}"),
        external_id=external_id,
        full_name=kw.pop("full_name", f"Student {external_id}"),
        tag_id=tag_id,
        enrolled_course_codes=frozenset(courses),
        **kw,
    )


def make_schedule(
    course_code: str = "CS101",
    start: str = "09:00",
    end: str = "10:30",
    days=("Mon",),
    kiosk_id: str = "K1",
    **kw,
) -> ScheduleEntry:
    h1, m1 = (int(p) for p in start.split(":"))
    h2, m2 = (int(p) for p in end.split(":"))
    return ScheduleEntry(
        id=kw.pop("id", f"s-{course_code}-{start}"),
        course_code=course_code,
        course_name=kw.pop("course_name", f"Course {course_code}"),
        start_time=time(h1, m1),
        end_time=time(h2, m2),
        days_of_week=frozenset(days),
        kiosk_id=kiosk_id,
    )


KIOSK = DeviceSession(device_id="K1", device_name="Front door", camera_enabled=False, connection_key="key-K1")


class FakeRemote:
    """In-memory RemoteStore. Flip ``available`` to simulate a network outage."""

    def __init__(self, *, identities=(), schedules=(), devices: Optional[Dict[str, DeviceSession]] = None):
        self.identities: List[Identity] = list(identities)
        self.schedules: List[ScheduleEntry] = list(schedules)
        self.devices: Dict[str, DeviceSession] = dict(devices if devices is not None else {KIOSK.connection_key: KIOSK})
        self.available = True
        self.uploaded: Dict[tuple, AttendanceLogEntry] = {}
        self.rejected_external_ids: Set[str] = set()
        self.unconfirmed_external_ids: Set[str] = set()
        self.device_status: Dict[str, DeviceStatus] = {}
        self.calls: List[str] = []
        self.fail_schedules = False
        self.pending_registrations: Dict[str, Identity] = {}

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if not self.available:
            raise RemoteUnavailable(f"{name}: network down")

    def fetch_identities(self) -> List[Identity]:
        self._call("fetch_identities")
        return list(self.identities)

    def fetch_schedules(self) -> List[ScheduleEntry]:
        self._call("fetch_schedules")
        if self.fail_schedules:
            raise RemoteUnavailable("fetch_schedules: timed out")
        return list(self.schedules)

    def upsert_logs(self, logs: Sequence[AttendanceLogEntry]) -> Set[tuple]:
        self._call("upsert_logs")
        if any(e.external_id in self.rejected_external_ids for e in logs):
            raise RemoteRejected("violates foreign key constraint", status_code=409)
        confirmed = set()
        for e in logs:
            self.uploaded[e.key] = e
            if e.external_id not in self.unconfirmed_external_ids:
                confirmed.add(e.key)
        return confirmed

    def verify_device(self, connection_key: str) -> Optional[DeviceSession]:
        self._call("verify_device")
        return self.devices.get(connection_key)

    def set_device_status(self, device_id: str, status: DeviceStatus) -> None:
        self._call("set_device_status")
        self.device_status[device_id] = status

    def link_tag(self, external_id: str, tag_id: str) -> TagLink:
        self._call("link_tag")
        pending = self.pending_registrations.pop(external_id, None)
        if pending is not None:
            self.identities.append(replace(pending, tag_id=tag_id))
            return TagLink.REGISTERED
        for i, ident in enumerate(self.identities):
            if ident.external_id == external_id:
                self.identities[i] = replace(ident, tag_id=tag_id)
                return TagLink.UPDATED
        raise UnknownIdentity(external_id)

    def ping(self) -> bool:
        self.calls.append("ping")
        return self.available


@dataclass
class RecordingNotifier:
    outcomes: list = field(default_factory=list)
    order: List[str] = field(default_factory=list)

    def scan_outcome(self, outcome) -> None:
        self.order.append("scan_outcome")
        self.outcomes.append(outcome)

    def reset_activity(self) -> None:
        self.order.append("reset_activity")


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class MemorySessionStore:
    def __init__(self, session: Optional[DeviceSession] = None):
        self.session = session

    def load(self) -> Optional[DeviceSession]:
        return self.session

    def save(self, session: DeviceSession) -> None:
        self.session = session

    def clear(self) -> None:
        self.session = None


class FakeSerial:
    """Serial handle fed from a list of frames; raises once frames run out if ``fail_at_end``."""

    def __init__(self, path: str, frames=(), *, fail_at_end: bool = False):
        self.path = path
        self._frames = list(frames)
        self._fail_at_end = fail_at_end
        self._lock = threading.Lock()
        self.closed = False
        self.drained = threading.Event()

    def readline(self) -> bytes:
        with self._lock:
            if self.closed:
                raise OSError("port closed")
            if self._frames:
                return self._frames.pop(0)
        self.drained.set()
        if self._fail_at_end:
            raise OSError("device unplugged")
        threading.Event().wait(0.01)
        return b""

    def close(self) -> None:
        with self._lock:
            self.closed = True
