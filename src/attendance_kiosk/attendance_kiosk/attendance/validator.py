from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional, Protocol

from ..cache.repository import LocalCache
from ..common.datetime_utils import format_clock, now_local, weekday_abbrev
from ..common.validators import clean_token
from ..core.constants import SCAN_REPEAT_WINDOW_SECONDS
from ..core.enums import Collection, RejectReason, SyncStatus
from ..core.exceptions import InvariantViolation, ValidationRejected
from ..devices.model import DeviceSession
from ..identities.model import Identity
from ..schedules.matcher import find_active_entry
from ..schedules.model import ScheduleEntry
from .model import AttendanceLogEntry, ScanOutcome

logger = logging.getLogger(__name__)


class ScanNotifier(Protocol):
    """UI collaborator: renders outcomes and owns the idle timer."""

    def scan_outcome(self, outcome: ScanOutcome) -> None:
        raise NotImplementedError

    def reset_activity(self) -> None:
        raise NotImplementedError


class AttendanceValidator:
    """Turns one raw tag token into Accepted or Rejected(reason).

    RateLimit -> IdentityLookup -> [FaceMatch] -> ScheduleMatch ->
    EnrollmentCheck -> DuplicateCheck -> Commit -> Notify.

    Every step up to Commit reads and writes the local cache only, so
    validation behaves the same offline. The Push triggered after Commit
    runs on its own worker and is never awaited here.
    """

    def __init__(
        self,
        cache: LocalCache,
        *,
        session: Callable[[], Optional[DeviceSession]],
        notifier: ScanNotifier,
        request_push: Callable[[], object],
        is_online: Callable[[], bool],
        clock: Callable[[], datetime] = now_local,
        monotonic: Callable[[], float] = time.monotonic,
        repeat_window_seconds: float = SCAN_REPEAT_WINDOW_SECONDS,
        require_face_match: bool = False,
    ):
        self._cache = cache
        self._session = session
        self._notifier = notifier
        self._request_push = request_push
        self._is_online = is_online
        self._clock = clock
        self._monotonic = monotonic
        self._repeat_window = float(repeat_window_seconds)
        self._require_face_match = bool(require_face_match)

        self._last_token: Optional[str] = None
        self._last_token_at = 0.0
        self._recognized_external_id: Optional[str] = None

    def confirm_face(self, external_id: Optional[str]) -> None:
        """Camera collaborator reports who is currently in front of the kiosk."""
        self._recognized_external_id = external_id

    def process(self, raw_token: bytes | str) -> Optional[ScanOutcome]:
        """Run the pipeline. Returns None when the token was absorbed as a repeat."""
        token = clean_token(raw_token)
        if not token:
            return None
        if self._is_repeat(token):
            logger.debug("Ignoring repeated token %s", token)
            return None

        now = self._clock()
        identity: Optional[Identity] = None
        try:
            session = self._require_session()
            identity = self._lookup_identity(token)
            self._check_face(identity, session)
            entry = self._match_schedule(session.device_id, now)
            self._check_enrollment(identity, entry)
            self._check_duplicate(identity, entry, now)
            log = self._commit(identity, entry, session, now)
        except ValidationRejected as rejected:
            outcome = ScanOutcome.reject(
                token=token,
                at=now,
                reason=rejected.reason,
                context=rejected.context,
                identity=identity,
            )
            logger.info("Scan %s rejected: %s", token, rejected)
        else:
            outcome = ScanOutcome.accept(token=token, at=now, identity=identity, course_name=entry.course_name, log=log)
            logger.info("Scan %s accepted: %s in %s", token, identity.external_id, entry.course_code)

        self._notifier.reset_activity()
        self._notifier.scan_outcome(outcome)
        return outcome

    # ==================== steps ====================

    def _is_repeat(self, token: str) -> bool:
        at = self._monotonic()
        if token == self._last_token and (at - self._last_token_at) < self._repeat_window:
            return True
        self._last_token = token
        self._last_token_at = at
        return False

    def _require_session(self) -> DeviceSession:
        session = self._session()
        if session is None:
            raise ValidationRejected(RejectReason.NO_SESSION)
        return session

    def _lookup_identity(self, token: str) -> Identity:
        matches = self._cache.query_by_index(Collection.IDENTITIES, "tag_id", token)
        if not matches:
            matches = self._cache.query_by_index(Collection.IDENTITIES, "tag_id", token, case_insensitive=True)
        else:
            folded = self._cache.query_by_index(Collection.IDENTITIES, "tag_id", token, case_insensitive=True)
            if len(folded) > len(matches):
                matches = folded

        if not matches:
            raise ValidationRejected(RejectReason.NOT_REGISTERED, token)
        if len(matches) > 1:
            logger.error(
                "Tag %s maps to %d identities (%s); rejecting scan",
                token,
                len(matches),
                ", ".join(sorted(m.external_id for m in matches)),
            )
            raise ValidationRejected(RejectReason.AMBIGUOUS_TAG, token)
        return matches[0]

    def _check_face(self, identity: Identity, session: DeviceSession) -> None:
        if not (self._require_face_match and session.camera_enabled):
            return
        if self._recognized_external_id != identity.external_id:
            raise ValidationRejected(RejectReason.FACE_MISMATCH, identity.full_name)

    def _match_schedule(self, kiosk_id: str, now: datetime) -> ScheduleEntry:
        entries = self._cache.query_where(Collection.SCHEDULES, kiosk_id=kiosk_id)
        entry = find_active_entry(entries, kiosk_id=kiosk_id, now=now)
        if entry is None:
            logger.debug("No class on kiosk %s at %s %s", kiosk_id, weekday_abbrev(now.date()), format_clock(now.time()))
            raise ValidationRejected(RejectReason.NO_ACTIVE_CLASS, format_clock(now.time()))
        return entry

    def _check_enrollment(self, identity: Identity, entry: ScheduleEntry) -> None:
        if not identity.is_enrolled_in(entry.course_code):
            raise ValidationRejected(RejectReason.NOT_ENROLLED, entry.course_name)

    def _find_existing(self, identity: Identity, entry: ScheduleEntry, now: datetime) -> Optional[AttendanceLogEntry]:
        existing = self._cache.query_where(
            Collection.LOGS,
            external_id=identity.external_id,
            course_code=entry.course_code,
            date=now.date(),
        )
        return existing[0] if existing else None

    def _check_duplicate(self, identity: Identity, entry: ScheduleEntry, now: datetime) -> None:
        existing = self._find_existing(identity, entry, now)
        if existing is not None:
            raise ValidationRejected(RejectReason.ALREADY_PRESENT, existing.timestamp)

    def _commit(self, identity: Identity, entry: ScheduleEntry, session: DeviceSession, now: datetime) -> AttendanceLogEntry:
        log = AttendanceLogEntry(
            local_id=None,
            external_id=identity.external_id,
            full_name=identity.full_name,
            course_code=entry.course_code,
            kiosk_id=session.device_id,
            date=now.date(),
            timestamp=now,
            sync_status=SyncStatus.PENDING,
        )
        try:
            stored = self._cache.put(Collection.LOGS, log)
        except InvariantViolation:
            existing = self._find_existing(identity, entry, now)
            if existing is None:
                raise
            raise ValidationRejected(RejectReason.ALREADY_PRESENT, existing.timestamp)

        self._recognized_external_id = None
        if self._is_online():
            self._request_push()
        return stored
