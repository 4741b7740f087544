from __future__ import annotations

from typing import List

from serial.tools import list_ports as serial_list_ports

from ..core.constants import FALLBACK_READER_PORTS


def list_ports() -> List[str]:
    """Serial ports the operator may pick from: detected ones first, then well-known names."""
    detected = [p.device for p in serial_list_ports.comports()]
    seen = set(detected)
    return detected + [p for p in FALLBACK_READER_PORTS if p not in seen]
