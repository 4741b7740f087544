"""Durable storage of the last successful device session.

Kept as a small JSON file beside the cache so it survives restarts and a
cache rebuild alike.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from ..core.exceptions import StorageError
from .model import DeviceSession

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def load(self) -> Optional[DeviceSession]:
        raise NotImplementedError

    def save(self, session: DeviceSession) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class JsonFileSessionStore(SessionStore):
    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[DeviceSession]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return DeviceSession.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.error("Unreadable session file %s: %s", self._path, e)
            return None

    def save(self, session: DeviceSession) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f)
            os.replace(tmp, self._path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"Cannot write session file {self._path}: {e}") from e

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot remove session file {self._path}: {e}") from e
