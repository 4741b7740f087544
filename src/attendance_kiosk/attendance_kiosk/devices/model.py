from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from ..attendance.stats import KioskStats
from ..core.enums import SessionState


@dataclass(frozen=True)
class DeviceSession:
    """Kiosk identity persisted across restarts after a successful online login."""

    device_id: str
    device_name: str
    camera_enabled: bool
    connection_key: str

    def to_dict(self) -> dict:
        return asdict(self)

    def to_public_dict(self) -> dict:
        data = self.to_dict()
        data.pop("connection_key")
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceSession":
        return cls(
            device_id=str(data["device_id"]),
            device_name=str(data.get("device_name") or "Kiosk"),
            camera_enabled=bool(data.get("camera_enabled", True)),
            connection_key=str(data["connection_key"]),
        )


@dataclass(frozen=True)
class LoginResult:
    state: SessionState
    session: Optional[DeviceSession] = None
    stats: Optional[KioskStats] = None
    offline: bool = False
    message: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.state == SessionState.ACTIVE
