from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Tuple

from ..core.enums import RejectReason, SyncStatus
from ..identities.model import Identity


@dataclass(frozen=True)
class AttendanceLogEntry:
    """One locally-authoritative attendance record.

    At most one entry exists per (external_id, course_code, date).
    """

    local_id: Optional[int]
    external_id: str
    course_code: str
    kiosk_id: str
    date: date
    timestamp: datetime
    sync_status: SyncStatus = SyncStatus.PENDING
    full_name: Optional[str] = None
    push_attempts: int = 0
    last_error: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, date]:
        return (self.external_id, self.course_code, self.date)

    def is_stuck(self, max_attempts: int) -> bool:
        return self.sync_status == SyncStatus.PENDING and self.push_attempts >= max_attempts


@dataclass(frozen=True)
class ScanOutcome:
    """Terminal result of one scan: Accepted{identity, course} or Rejected{reason, context}."""

    token: str
    accepted: bool
    at: datetime
    reason: Optional[RejectReason] = None
    context: Any = None
    identity: Optional[Identity] = None
    course_name: Optional[str] = None
    log: Optional[AttendanceLogEntry] = None

    @classmethod
    def accept(cls, *, token: str, at: datetime, identity: Identity, course_name: str, log: AttendanceLogEntry) -> "ScanOutcome":
        return cls(token=token, accepted=True, at=at, identity=identity, course_name=course_name, log=log)

    @classmethod
    def reject(
        cls,
        *,
        token: str,
        at: datetime,
        reason: RejectReason,
        context: Any = None,
        identity: Optional[Identity] = None,
    ) -> "ScanOutcome":
        return cls(token=token, accepted=False, at=at, reason=reason, context=context, identity=identity)

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "accepted": self.accepted,
            "at": self.at.isoformat(),
            "reason": self.reason.value if self.reason else None,
            "context": str(self.context) if self.context is not None else None,
            "full_name": self.identity.full_name if self.identity else None,
            "external_id": self.identity.external_id if self.identity else None,
            "course_name": self.course_name,
        }
