from __future__ import annotations

from typing import Any, Optional

from .enums import RejectReason


class KioskError(Exception):
    """Base exception for the kiosk core."""


class StorageError(KioskError):
    """Raised when the local cache cannot be read or written.

    Fatal to the current operation only; the cache stays in its last
    known-good state and the operation is retried on the next cycle.
    """


class RemoteUnavailable(KioskError):
    """Raised on network failure, timeout or auth failure against the remote store."""


class RemoteRejected(KioskError):
    """Raised when the remote store answers but refuses a specific payload."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AccessDenied(KioskError):
    """Raised when a connection key is not accepted."""


class UnknownIdentity(KioskError):
    """Raised when no cached identity has the given external id."""


class HardwareUnavailable(KioskError):
    """Raised when the reader device cannot be opened."""


class InvariantViolation(KioskError):
    """Raised when an internal invariant would be broken (never expected)."""


class ValidationRejected(KioskError):
    """Expected business outcome of a scan, not a failure."""

    def __init__(self, reason: RejectReason, context: Any = None):
        super().__init__(f"{reason.value}: {context}" if context is not None else reason.value)
        self.reason = reason
        self.context = context
