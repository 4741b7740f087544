from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from ..attendance.model import AttendanceLogEntry
from ..core.enums import DeviceStatus, TagLink
from ..devices.model import DeviceSession
from ..identities.model import Identity
from ..schedules.model import ScheduleEntry

LogKey = Tuple[str, str, date]


class RemoteStore(Protocol):
    """The authoritative store this kiosk reconciles with.

    Every call is bounded by a timeout. Transport, timeout and auth failures
    raise RemoteUnavailable; a refused payload raises RemoteRejected.
    """

    def fetch_identities(self) -> List[Identity]:
        raise NotImplementedError

    def fetch_schedules(self) -> List[ScheduleEntry]:
        raise NotImplementedError

    def upsert_logs(self, logs: Sequence[AttendanceLogEntry]) -> Set[LogKey]:
        """Upsert keyed by (external_id, course_code, date), last write wins.

        Returns the keys the remote confirmed in its response.
        """

        raise NotImplementedError

    def verify_device(self, connection_key: str) -> Optional[DeviceSession]:
        """Device registered under this key, or None when the key is unknown."""

        raise NotImplementedError

    def set_device_status(self, device_id: str, status: DeviceStatus) -> None:
        raise NotImplementedError

    def link_tag(self, external_id: str, tag_id: str) -> TagLink:
        """Attach a card to a student, promoting a pending registration if one exists.

        Raises UnknownIdentity when neither a pending registration nor a
        student has this external id.
        """

        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError
