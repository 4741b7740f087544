from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

from sqlalchemy import func

from ..attendance.model import AttendanceLogEntry
from ..common.datetime_utils import format_clock, parse_clock, parse_iso_date
from ..core.enums import Collection, SyncStatus
from ..core.exceptions import InvariantViolation
from ..database.base import db_session
from ..database.connection import LocalDatabase
from ..database.models import AttendanceLogRow, IdentityRow, ScheduleRow
from ..identities.model import Identity
from ..schedules.model import ScheduleEntry
from .repository import LocalCache, Merge

logger = logging.getLogger(__name__)


def _split(value: Optional[str]) -> frozenset:
    return frozenset(p.strip() for p in (value or "").split(",") if p.strip())


def _join(values) -> str:
    return ",".join(sorted(values))


def _identity_to_row(i: Identity) -> dict:
    return {
        "id": i.id,
        "external_id": i.external_id,
        "full_name": i.full_name,
        "tag_id": i.tag_id,
        "enrolled_courses": _join(i.enrolled_course_codes),
        "biometric_descriptor": i.biometric_descriptor,
        "photo_url": i.photo_url,
    }


def _identity_from_row(r: IdentityRow) -> Identity:
    return Identity(
        id=r.id,
        external_id=r.external_id,
        full_name=r.full_name,
        tag_id=r.tag_id,
        enrolled_course_codes=_split(r.enrolled_courses),
        biometric_descriptor=r.biometric_descriptor,
        photo_url=r.photo_url,
    )


def _schedule_to_row(s: ScheduleEntry) -> dict:
    return {
        "id": s.id,
        "course_code": s.course_code,
        "course_name": s.course_name,
        "start_time": format_clock(s.start_time),
        "end_time": format_clock(s.end_time),
        "days": _join(s.days_of_week),
        "kiosk_id": s.kiosk_id,
    }


def _schedule_from_row(r: ScheduleRow) -> ScheduleEntry:
    return ScheduleEntry(
        id=r.id,
        course_code=r.course_code,
        course_name=r.course_name,
        start_time=parse_clock(r.start_time),
        end_time=parse_clock(r.end_time),
        days_of_week=_split(r.days),
        kiosk_id=r.kiosk_id,
    )


def _log_to_row(e: AttendanceLogEntry) -> dict:
    row = {
        "external_id": e.external_id,
        "full_name": e.full_name,
        "course_code": e.course_code,
        "kiosk_id": e.kiosk_id,
        "date": e.date.isoformat(),
        "timestamp": e.timestamp,
        "sync_status": e.sync_status.value,
        "push_attempts": e.push_attempts,
        "last_error": e.last_error,
    }
    if e.local_id is not None:
        row["local_id"] = e.local_id
    return row


def _log_from_row(r: AttendanceLogRow) -> AttendanceLogEntry:
    return AttendanceLogEntry(
        local_id=r.local_id,
        external_id=r.external_id,
        full_name=r.full_name,
        course_code=r.course_code,
        kiosk_id=r.kiosk_id,
        date=parse_iso_date(r.date),
        timestamp=r.timestamp,
        sync_status=SyncStatus(r.sync_status),
        push_attempts=int(r.push_attempts or 0),
        last_error=r.last_error,
    )


@dataclass(frozen=True)
class _Table:
    model: Type
    key: str
    to_row: Callable[[Any], dict]
    from_row: Callable[[Any], Any]


_TABLES: Dict[Collection, _Table] = {
    Collection.IDENTITIES: _Table(IdentityRow, "id", _identity_to_row, _identity_from_row),
    Collection.SCHEDULES: _Table(ScheduleRow, "id", _schedule_to_row, _schedule_from_row),
    Collection.LOGS: _Table(AttendanceLogRow, "local_id", _log_to_row, _log_from_row),
}


def _column_value(value: Any) -> Any:
    if isinstance(value, SyncStatus):
        return value.value
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return value


class SqlLocalCache(LocalCache):
    """LocalCache over SQLite through SQLAlchemy.

    Every operation runs in its own transaction under one lock, so the cache
    has a single writer and a reader never sees a collection mid-replace.
    """

    def __init__(self, database: LocalDatabase):
        self._db = database
        self._lock = threading.RLock()

    def init_schema(self) -> None:
        with self._lock:
            self._db.init_schema()

    def _column(self, table: _Table, field: str):
        column = getattr(table.model, field, None)
        if column is None:
            raise ValueError(f"{table.model.__tablename__} has no field {field!r}")
        return column

    def put(self, collection: Collection, record: Any) -> Any:
        table = _TABLES[collection]
        values = table.to_row(record)
        with self._lock, db_session(self._db) as s:
            key = values.get(table.key)
            existing = s.get(table.model, key) if key is not None else None
            if existing is None:
                row = table.model(**values)
                s.add(row)
            else:
                if collection == Collection.LOGS:
                    _guard_sync_status(existing.sync_status, values["sync_status"])
                for k, v in values.items():
                    setattr(existing, k, v)
                row = existing
            s.flush()
            return table.from_row(row)

    def get_by_key(self, collection: Collection, key: Any) -> Optional[Any]:
        table = _TABLES[collection]
        with self._lock, db_session(self._db) as s:
            row = s.get(table.model, key)
            return table.from_row(row) if row is not None else None

    def query_by_index(self, collection: Collection, field: str, value: Any, *, case_insensitive: bool = False) -> List[Any]:
        table = _TABLES[collection]
        column = self._column(table, field)
        value = _column_value(value)
        if case_insensitive and isinstance(value, str):
            clause = func.lower(column) == value.lower()
        else:
            clause = column == value
        with self._lock, db_session(self._db) as s:
            rows = s.query(table.model).filter(clause).all()
            return [table.from_row(r) for r in rows]

    def query_where(self, collection: Collection, **equals: Any) -> List[Any]:
        table = _TABLES[collection]
        with self._lock, db_session(self._db) as s:
            q = s.query(table.model)
            for field, value in equals.items():
                q = q.filter(self._column(table, field) == _column_value(value))
            return [table.from_row(r) for r in q.all()]

    def count_where(self, collection: Collection, **equals: Any) -> int:
        table = _TABLES[collection]
        with self._lock, db_session(self._db) as s:
            q = s.query(table.model)
            for field, value in equals.items():
                q = q.filter(self._column(table, field) == _column_value(value))
            return int(q.count())

    def all(self, collection: Collection) -> List[Any]:
        table = _TABLES[collection]
        with self._lock, db_session(self._db) as s:
            rows = s.query(table.model).order_by(getattr(table.model, table.key)).all()
            return [table.from_row(r) for r in rows]

    def replace_all(
        self,
        records_by_collection: Mapping[Collection, Sequence[Any]],
        *,
        merge: Optional[Mapping[Collection, Merge]] = None,
    ) -> None:
        merge = merge or {}
        with self._lock, db_session(self._db) as s:
            for collection, records in records_by_collection.items():
                table = _TABLES[collection]
                if collection in merge:
                    current = [table.from_row(r) for r in s.query(table.model).all()]
                    records = merge[collection](records, current)
                s.query(table.model).delete(synchronize_session=False)
                s.add_all([table.model(**table.to_row(r)) for r in records])
        logger.debug(
            "Replaced %s",
            ", ".join(f"{c.value}={len(r)}" for c, r in records_by_collection.items()),
        )

    def delete_where(self, collection: Collection, predicate: Callable[[Any], bool]) -> int:
        table = _TABLES[collection]
        key_column = getattr(table.model, table.key)
        with self._lock, db_session(self._db) as s:
            doomed = [getattr(r, table.key) for r in s.query(table.model).all() if predicate(table.from_row(r))]
            if doomed:
                s.query(table.model).filter(key_column.in_(doomed)).delete(synchronize_session=False)
            return len(doomed)

    def update_many(self, collection: Collection, keys: Sequence[Any], **changes: Any) -> int:
        if not keys:
            return 0
        table = _TABLES[collection]
        key_column = getattr(table.model, table.key)
        values = {field: _column_value(v) for field, v in changes.items()}
        with self._lock, db_session(self._db) as s:
            rows = s.query(table.model).filter(key_column.in_(list(keys))).all()
            for row in rows:
                if collection == Collection.LOGS and "sync_status" in values:
                    _guard_sync_status(row.sync_status, values["sync_status"])
                for field, value in values.items():
                    self._column(table, field)
                    setattr(row, field, value)
            return len(rows)


def _guard_sync_status(current: str, new: str) -> None:
    if current == SyncStatus.SYNCED.value and new == SyncStatus.PENDING.value:
        raise InvariantViolation("sync_status cannot go back from synced to pending")
