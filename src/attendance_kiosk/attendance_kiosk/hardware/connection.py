"""Card reader connection.

Owns at most one open serial port. Lines read from it are turned into
ScanReceived events; status changes into ReaderStatusChanged events.
Both go through the ``publish`` callback, never straight to the validator.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

import serial

from ..common.validators import clean_token
from ..core.constants import DEFAULT_BAUD_RATE
from ..core.enums import ReaderState, ReaderStatus
from ..core.exceptions import HardwareUnavailable
from ..runtime.events import ReaderStatusChanged, ScanReceived

logger = logging.getLogger(__name__)

Opener = Callable[[str, int], Any]


def open_serial(path: str, baudrate: int, *, timeout: float = 0.5) -> serial.Serial:
    try:
        return serial.Serial(port=path, baudrate=baudrate, timeout=timeout)
    except serial.SerialException as e:
        raise HardwareUnavailable(f"{path}: {e}") from e


class ConnectionManager:
    def __init__(
        self,
        publish: Callable[[object], None],
        *,
        baudrate: int = DEFAULT_BAUD_RATE,
        opener: Optional[Opener] = None,
    ):
        self._publish = publish
        self._baudrate = int(baudrate)
        self._opener: Opener = opener or open_serial

        self._lock = threading.RLock()
        self._handle: Any = None
        self._path: Optional[str] = None
        self._state = ReaderState.DISCONNECTED
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def path(self) -> Optional[str]:
        return self._path

    def connect(self, path: str) -> ReaderState:
        """Switch to ``path``. Any previously open port is closed first.

        Never raises: an open failure is reported as a FAILED status.
        """
        with self._lock:
            self._close_locked()
            self._state = ReaderState.CONNECTING
            self._path = path
            try:
                handle = self._opener(path, self._baudrate)
            except (HardwareUnavailable, serial.SerialException, OSError, ValueError) as e:
                logger.error("Cannot open reader on %s: %s", path, e)
                self._state = ReaderState.ERROR
                self._publish(ReaderStatusChanged(ReaderStatus.FAILED, path, str(e)))
                return self._state

            self._handle = handle
            self._state = ReaderState.CONNECTED
            self._stop = threading.Event()
            self._reader = threading.Thread(
                target=self._read_loop,
                args=(handle, self._stop, path),
                name=f"reader-{path}",
                daemon=True,
            )
            self._reader.start()

        logger.info("Reader connected on %s @ %d baud", path, self._baudrate)
        self._publish(ReaderStatusChanged(ReaderStatus.CONNECTED, path))
        return self._state

    def close(self) -> None:
        with self._lock:
            self._close_locked()
            self._state = ReaderState.DISCONNECTED

    def _close_locked(self) -> None:
        self._stop.set()
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.close()
            except (serial.SerialException, OSError) as e:
                logger.warning("Error closing reader on %s: %s", self._path, e)
        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=2.0)

    def _read_loop(self, handle: Any, stop: threading.Event, path: str) -> None:
        while not stop.is_set():
            try:
                line = handle.readline()
            except (serial.SerialException, OSError) as e:
                if stop.is_set():
                    return
                self._on_read_error(handle, path, e)
                return
            if not line:
                continue
            token = clean_token(line)
            if token:
                self._publish(ScanReceived(token))

    def _on_read_error(self, handle: Any, path: str, error: Exception) -> None:
        logger.error("Reader on %s failed: %s", path, error)
        with self._lock:
            if self._handle is not handle:
                return
            self._handle = None
            self._reader = None
            try:
                handle.close()
            except (serial.SerialException, OSError):
                pass
            self._state = ReaderState.DISCONNECTED
        self._publish(ReaderStatusChanged(ReaderStatus.ERROR, path, str(error)))
