"""Row mapping between the remote REST tables and the kiosk's domain records.

Remote tables: students, schedules, attendance_logs, devices, pending_registrations.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional

from ..attendance.model import AttendanceLogEntry
from ..common.datetime_utils import normalize_weekday, parse_clock, parse_iso_date
from ..devices.model import DeviceSession
from ..identities.model import Identity
from ..schedules.model import ScheduleEntry
from .remote import LogKey

logger = logging.getLogger(__name__)

LOG_CONFLICT_COLUMNS = "student_id,subject_code,date"


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [p for p in re.split(r"[,\s]+", value) if p]
    return [str(v).strip() for v in value if str(v).strip()]


def _as_id(value: Any) -> str:
    return "" if value is None else str(value)


def identity_from_remote(row: dict) -> Identity:
    return Identity(
        id=_as_id(row["id"]),
        external_id=_as_id(row["student_id"]),
        full_name=str(row.get("full_name") or ""),
        tag_id=str(row.get("rfid_uid") or "").strip(),
        enrolled_course_codes=frozenset(_as_list(row.get("enrolled_subjects"))),
        photo_url=row.get("face_image_url"),
    )


def _required_clock(row: dict, name: str):
    value = parse_clock(row.get(name))
    if value is None:
        raise ValueError(f"{name} is missing")
    return value


def schedule_from_remote(row: dict) -> ScheduleEntry:
    days = {d for d in (normalize_weekday(v) for v in _as_list(row.get("days"))) if d}
    return ScheduleEntry(
        id=_as_id(row["id"]),
        course_code=str(row["subject_code"]).strip(),
        course_name=str(row.get("subject_name") or row["subject_code"]),
        start_time=_required_clock(row, "time_start"),
        end_time=_required_clock(row, "time_end"),
        days_of_week=frozenset(days),
        kiosk_id=_as_id(row.get("kiosk_id")),
    )


def identity_row_from_pending(pending: dict, tag_id: str) -> dict:
    """`students` insert payload for a self-registered student getting their card."""
    full_name = " ".join(p for p in (pending.get("given_name"), pending.get("surname")) if p)
    return {
        "full_name": full_name,
        "student_id": pending["student_id"],
        "course": pending.get("course"),
        "rfid_uid": tag_id,
        "face_image_url": pending.get("face_image_url"),
        "enrolled_subjects": pending.get("enrolled_subjects"),
    }


def parse_rows(rows: Iterable[dict], parse, what: str) -> List[Any]:
    """Parse every row, skipping (and logging) malformed ones."""
    out = []
    for row in rows or []:
        try:
            out.append(parse(row))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed %s row %r: %s", what, row.get("id"), e)
    return out


def log_to_remote(entry: AttendanceLogEntry) -> dict:
    """Upload payload: local-only fields (local_id, retry bookkeeping) are left out."""
    return {
        "student_id": entry.external_id,
        "student_name": entry.full_name,
        "subject_code": entry.course_code,
        "kiosk_id": entry.kiosk_id,
        "date": entry.date.isoformat(),
        "timestamp": entry.timestamp.isoformat(),
        "status": "present",
        "sync_status": "synced",
    }


def log_key_from_remote(row: dict) -> Optional[LogKey]:
    try:
        return (str(row["student_id"]), str(row["subject_code"]), parse_iso_date(str(row["date"])[:10]))
    except (KeyError, ValueError):
        return None


def device_from_remote(row: dict, connection_key: str) -> DeviceSession:
    return DeviceSession(
        device_id=_as_id(row["id"]),
        device_name=str(row.get("device_name") or "Kiosk"),
        camera_enabled=row.get("camera_enabled") is not False,
        connection_key=connection_key,
    )
