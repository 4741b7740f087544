from __future__ import annotations

from datetime import datetime

from src.attendance_kiosk.attendance_kiosk.identities.merge import merge_identity
from src.attendance_kiosk.attendance_kiosk.schedules.matcher import find_active_entry

from fakes import make_identity, make_schedule


def test_overlapping_classes_pick_earliest_start_then_lowest_id():
    entries = [
        make_schedule("LATE", "08:30", "10:00", id="a"),
        make_schedule("EARLY_B", "08:00", "09:00", id="c"),
        make_schedule("EARLY_A", "08:00", "09:30", id="b"),
    ]

    found = find_active_entry(entries, kiosk_id="K1", now=datetime(2026, 10, 12, 8, 45))

    assert found.course_code == "EARLY_A"


def test_merge_only_carries_descriptor():
    cached = make_identity("S1", "OLD", full_name="Old Name", biometric_descriptor=b"d", photo_url="old.jpg")
    remote = make_identity("S1", "NEW", full_name="New Name")

    merged = merge_identity(remote, cached)

    assert merged.biometric_descriptor == b"d"
    assert merged.full_name == "New Name"
    assert merged.tag_id == "NEW"
    assert merged.photo_url is None
