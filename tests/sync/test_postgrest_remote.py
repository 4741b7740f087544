from __future__ import annotations

from datetime import date, datetime

import pytest
import requests

from src.attendance_kiosk.attendance_kiosk.attendance.model import AttendanceLogEntry
from src.attendance_kiosk.attendance_kiosk.core.enums import DeviceStatus, TagLink
from src.attendance_kiosk.attendance_kiosk.core.exceptions import RemoteRejected, RemoteUnavailable, UnknownIdentity
from src.attendance_kiosk.attendance_kiosk.sync.postgrest_remote import PostgrestRemoteStore


class _Response:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = b"" if payload is None else b"x"

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class _Http:
    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)


def _store(http):
    return PostgrestRemoteStore("https://x.supabase.co/", "anon", timeout=3, http=http)


def test_fetch_identities_sends_auth_headers():
    http = _Http(_Response(payload=[{"id": 1, "student_id": "S1", "full_name": "A", "rfid_uid": "T1"}]))

    identities = _store(http).fetch_identities()

    method, url, kwargs = http.requests[0]
    assert (method, url) == ("GET", "https://x.supabase.co/rest/v1/students")
    assert kwargs["headers"]["Authorization"] == "Bearer anon"
    assert kwargs["timeout"] == 3.0
    assert [i.external_id for i in identities] == ["S1"]


def test_upsert_returns_confirmed_keys():
    entry = AttendanceLogEntry(
        local_id=1,
        external_id="S1",
        course_code="CS101",
        kiosk_id="K1",
        date=date(2026, 10, 12),
        timestamp=datetime(2026, 10, 12, 9, 5),
    )
    http = _Http(_Response(201, payload=[{"student_id": "S1", "subject_code": "CS101", "date": "2026-10-12"}]))

    confirmed = _store(http).upsert_logs([entry])

    _, _, kwargs = http.requests[0]
    assert kwargs["params"] == {"on_conflict": "student_id,subject_code,date"}
    assert "merge-duplicates" in kwargs["headers"]["Prefer"]
    assert confirmed == {entry.key}


@pytest.mark.parametrize(
    "http",
    [
        _Http(error=requests.Timeout()),
        _Http(error=requests.ConnectionError()),
        _Http(_Response(503, text="unavailable")),
        _Http(_Response(401, text="bad key")),
    ],
)
def test_transport_and_auth_failures_mean_unavailable(http):
    with pytest.raises(RemoteUnavailable):
        _store(http).fetch_schedules()


def test_payload_errors_are_rejections():
    http = _Http(_Response(409, text="duplicate"))

    with pytest.raises(RemoteRejected) as exc:
        _store(http).set_device_status("K1", DeviceStatus.ONLINE)

    assert exc.value.status_code == 409


def test_verify_device_unknown_key():
    http = _Http(_Response(payload=[]))

    assert _store(http).verify_device("nope") is None
    assert http.requests[0][2]["params"]["connection_key"] == "eq.nope"


def test_ping():
    assert _store(_Http(_Response(404, text=""))).ping() is True
    assert _store(_Http(error=requests.ConnectionError())).ping() is False


def test_schedule_rows_without_times_are_dropped():
    http = _Http(
        _Response(
            payload=[
                {"id": 1, "subject_code": "CS202", "time_start": "13:00", "time_end": "14:30", "days": "Tue"},
                {"id": 2, "subject_code": "CS303", "time_start": None, "time_end": "16:00", "days": "Tue"},
            ]
        )
    )

    schedules = _store(http).fetch_schedules()

    assert [s.course_code for s in schedules] == ["CS202"]


def test_link_tag_promotes_pending_registration():
    pending = {
        "id": 41,
        "student_id": "2023009",
        "given_name": "Tran",
        "surname": "Thi B",
        "course": "BSIT",
        "face_image_url": "https://cdn/b.jpg",
        "enrolled_subjects": "CS101",
    }
    http = _Http(_Response(payload=[pending]), _Response(201), _Response(204))

    assert _store(http).link_tag("2023009", "04C3D4") == TagLink.REGISTERED

    calls = [(method, url.rsplit("/", 1)[-1]) for method, url, _ in http.requests]
    assert calls == [("GET", "pending_registrations"), ("POST", "students"), ("DELETE", "pending_registrations")]
    inserted = http.requests[1][2]["json"][0]
    assert inserted["full_name"] == "Tran Thi B"
    assert inserted["rfid_uid"] == "04C3D4"
    assert http.requests[2][2]["params"] == {"id": "eq.41"}


def test_link_tag_updates_existing_student():
    http = _Http(_Response(payload=[]), _Response(payload=[{"id": 7, "student_id": "2023001"}]), _Response(204))

    assert _store(http).link_tag("2023001", "NEW") == TagLink.UPDATED

    method, _, kwargs = http.requests[2]
    assert method == "PATCH"
    assert kwargs["params"] == {"id": "eq.7"}
    assert kwargs["json"] == {"rfid_uid": "NEW"}


def test_link_tag_unknown_student():
    http = _Http(_Response(payload=[]), _Response(payload=[]))

    with pytest.raises(UnknownIdentity):
        _store(http).link_tag("nobody", "NEW")
