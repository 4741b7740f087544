from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

import pytest

from src.attendance_kiosk.attendance_kiosk.attendance.model import AttendanceLogEntry
from src.attendance_kiosk.attendance_kiosk.core.enums import Collection, SyncStatus
from src.attendance_kiosk.attendance_kiosk.core.exceptions import InvariantViolation

from fakes import make_identity, make_schedule


def _log(external_id="S1", course="CS101", day=date(2026, 10, 12), status=SyncStatus.PENDING):
    return AttendanceLogEntry(
        local_id=None,
        external_id=external_id,
        course_code=course,
        kiosk_id="K1",
        date=day,
        timestamp=datetime.combine(day, datetime.min.time()).replace(hour=9),
        sync_status=status,
        full_name="Student",
    )


def test_put_assigns_local_id_and_reads_back(cache):
    stored = cache.put(Collection.LOGS, _log())

    assert stored.local_id is not None
    assert cache.get_by_key(Collection.LOGS, stored.local_id) == stored
    assert stored.date == date(2026, 10, 12)
    assert stored.sync_status == SyncStatus.PENDING


def test_identity_round_trips_courses_and_descriptor(cache):
    ident = make_identity("S1", "04A1B2", courses=("CS101", "MA201"), biometric_descriptor=b"\x01\x02")
    cache.put(Collection.IDENTITIES, ident)

    assert cache.get_by_key(Collection.IDENTITIES, ident.id) == ident


def test_query_by_index_exact_then_case_insensitive(cache):
    cache.put(Collection.IDENTITIES, make_identity("S1", "04a1b2"))

    assert cache.query_by_index(Collection.IDENTITIES, "tag_id", "04A1B2") == []
    found = cache.query_by_index(Collection.IDENTITIES, "tag_id", "04A1B2", case_insensitive=True)
    assert [i.external_id for i in found] == ["S1"]


def test_replace_all_swaps_both_collections(cache):
    cache.put(Collection.IDENTITIES, make_identity("OLD", "T0"))
    cache.put(Collection.SCHEDULES, make_schedule("OLD1"))

    cache.replace_all(
        {
            Collection.IDENTITIES: [make_identity("S1", "T1"), make_identity("S2", "T2")],
            Collection.SCHEDULES: [make_schedule("CS101")],
        }
    )

    assert sorted(i.external_id for i in cache.all(Collection.IDENTITIES)) == ["S1", "S2"]
    assert [s.course_code for s in cache.all(Collection.SCHEDULES)] == ["CS101"]


def test_replace_all_is_all_or_nothing(cache):
    cache.put(Collection.IDENTITIES, make_identity("KEEP", "T0"))
    duplicate_id = [make_identity("S1", "T1", id="same"), make_identity("S2", "T2", id="same")]

    with pytest.raises(InvariantViolation):
        cache.replace_all({Collection.IDENTITIES: duplicate_id})

    assert [i.external_id for i in cache.all(Collection.IDENTITIES)] == ["KEEP"]


def test_replace_all_merges_against_rows_current_at_write_time(cache):
    cache.put(Collection.IDENTITIES, make_identity("S1", "T1"))
    fetched = [make_identity("S1", "T1-new")]
    # written after the remote fetch but before the replace
    cache.put(Collection.IDENTITIES, make_identity("S1", "T1", biometric_descriptor=b"\x09"))
    seen = []

    def keep_descriptor(incoming, current):
        seen.extend(current)
        by_id = {c.external_id: c for c in current}
        return [replace(i, biometric_descriptor=by_id[i.external_id].biometric_descriptor) for i in incoming]

    cache.replace_all({Collection.IDENTITIES: fetched}, merge={Collection.IDENTITIES: keep_descriptor})

    stored = cache.all(Collection.IDENTITIES)
    assert [i.tag_id for i in stored] == ["T1-new"]
    assert stored[0].biometric_descriptor == b"\x09"
    assert [c.biometric_descriptor for c in seen] == [b"\x09"]


def test_one_log_per_person_course_day(cache):
    cache.put(Collection.LOGS, _log())

    with pytest.raises(InvariantViolation):
        cache.put(Collection.LOGS, _log())

    assert cache.count_where(Collection.LOGS) == 1


def test_synced_log_never_goes_back_to_pending(cache):
    stored = cache.put(Collection.LOGS, _log())
    cache.update_many(Collection.LOGS, [stored.local_id], sync_status=SyncStatus.SYNCED)

    with pytest.raises(InvariantViolation):
        cache.update_many(Collection.LOGS, [stored.local_id], sync_status=SyncStatus.PENDING)
    with pytest.raises(InvariantViolation):
        cache.put(Collection.LOGS, replace(stored, sync_status=SyncStatus.PENDING))

    assert cache.get_by_key(Collection.LOGS, stored.local_id).sync_status == SyncStatus.SYNCED


def test_query_where_and_delete_where(cache):
    cache.put(Collection.LOGS, _log("S1", day=date(2026, 10, 11)))
    cache.put(Collection.LOGS, _log("S2", day=date(2026, 10, 12)))

    today = date(2026, 10, 12)
    assert [e.external_id for e in cache.query_where(Collection.LOGS, date=today)] == ["S2"]

    removed = cache.delete_where(Collection.LOGS, lambda e: e.date != today)

    assert removed == 1
    assert [e.external_id for e in cache.all(Collection.LOGS)] == ["S2"]
