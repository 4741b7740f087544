from __future__ import annotations

from enum import Enum


class SyncStatus(str, Enum):
    """Upload state of a locally created attendance log (pending -> synced only)."""

    PENDING = "pending"
    SYNCED = "synced"


class RejectReason(str, Enum):
    """Why a scan did not produce an attendance record."""

    NOT_REGISTERED = "NotRegistered"
    AMBIGUOUS_TAG = "AmbiguousTag"
    FACE_MISMATCH = "FaceMismatch"
    NO_ACTIVE_CLASS = "NoActiveClass"
    NOT_ENROLLED = "NotEnrolled"
    ALREADY_PRESENT = "AlreadyPresent"
    NO_SESSION = "NoSession"


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"


class ReaderState(str, Enum):
    """Lifecycle of the single hardware reader connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ReaderStatus(str, Enum):
    """Status values emitted to the UI collaborator."""

    CONNECTED = "connected"
    ERROR = "error"
    FAILED = "failed"


class Collection(str, Enum):
    IDENTITIES = "identities"
    SCHEDULES = "schedules"
    LOGS = "logs"


class DeviceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class TagLink(str, Enum):
    """How a scanned card got linked to a student on the remote store."""

    REGISTERED = "registered"
    UPDATED = "updated"
