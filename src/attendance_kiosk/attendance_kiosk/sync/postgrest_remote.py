from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Set

import requests

from ..attendance.model import AttendanceLogEntry
from ..core.constants import DEFAULT_REMOTE_TIMEOUT_SECONDS
from ..core.enums import DeviceStatus, TagLink
from ..core.exceptions import RemoteRejected, RemoteUnavailable, UnknownIdentity
from ..devices.model import DeviceSession
from ..identities.model import Identity
from ..schedules.model import ScheduleEntry
from .codec import (
    LOG_CONFLICT_COLUMNS,
    device_from_remote,
    identity_from_remote,
    identity_row_from_pending,
    log_key_from_remote,
    log_to_remote,
    parse_rows,
    schedule_from_remote,
)
from .remote import LogKey, RemoteStore

logger = logging.getLogger(__name__)


class PostgrestRemoteStore(RemoteStore):
    """RemoteStore over a PostgREST / Supabase REST endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        http: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._http = http or requests.Session()
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _url(self, table: str) -> str:
        return f"{self._base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, *, params=None, json=None, headers=None) -> Any:
        merged = dict(self._headers)
        merged.update(headers or {})
        try:
            resp = self._http.request(
                method,
                self._url(table),
                params=params,
                json=json,
                headers=merged,
                timeout=self._timeout,
            )
        except requests.Timeout as e:
            raise RemoteUnavailable(f"{method} {table} timed out") from e
        except requests.RequestException as e:
            raise RemoteUnavailable(f"{method} {table} failed: {e}") from e

        if resp.status_code in (401, 403):
            raise RemoteUnavailable(f"{method} {table} not authorized ({resp.status_code})")
        if resp.status_code >= 500 or resp.status_code == 429:
            raise RemoteUnavailable(f"{method} {table} returned {resp.status_code}")
        if not resp.ok:
            raise RemoteRejected(f"{method} {table} returned {resp.status_code}: {resp.text[:200]}", status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteUnavailable(f"{method} {table} returned invalid JSON") from e

    def fetch_identities(self) -> List[Identity]:
        rows = self._request("GET", "students", params={"select": "*"})
        return parse_rows(rows, identity_from_remote, "students")

    def fetch_schedules(self) -> List[ScheduleEntry]:
        rows = self._request("GET", "schedules", params={"select": "*"})
        return parse_rows(rows, schedule_from_remote, "schedules")

    def upsert_logs(self, logs: Sequence[AttendanceLogEntry]) -> Set[LogKey]:
        if not logs:
            return set()
        rows = self._request(
            "POST",
            "attendance_logs",
            params={"on_conflict": LOG_CONFLICT_COLUMNS},
            json=[log_to_remote(e) for e in logs],
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        confirmed = set()
        for row in rows or []:
            key = log_key_from_remote(row)
            if key is not None:
                confirmed.add(key)
        return confirmed

    def verify_device(self, connection_key: str) -> Optional[DeviceSession]:
        row = self._first("devices", connection_key=connection_key)
        if row is None:
            return None
        return device_from_remote(row, connection_key)

    def set_device_status(self, device_id: str, status: DeviceStatus) -> None:
        self._request(
            "PATCH",
            "devices",
            params={"id": f"eq.{device_id}"},
            json={"status": status.value},
        )

    def _first(self, table: str, **equals: str) -> Optional[dict]:
        params = {"select": "*", "limit": "1"}
        params.update({k: f"eq.{v}" for k, v in equals.items()})
        rows = self._request("GET", table, params=params)
        return rows[0] if rows else None

    def link_tag(self, external_id: str, tag_id: str) -> TagLink:
        pending = self._first("pending_registrations", student_id=external_id)
        if pending is not None:
            self._request("POST", "students", json=[identity_row_from_pending(pending, tag_id)])
            self._request("DELETE", "pending_registrations", params={"id": f"eq.{pending['id']}"})
            logger.info("Registered %s with card %s", external_id, tag_id)
            return TagLink.REGISTERED

        student = self._first("students", student_id=external_id)
        if student is None:
            raise UnknownIdentity(external_id)
        self._request("PATCH", "students", params={"id": f"eq.{student['id']}"}, json={"rfid_uid": tag_id})
        logger.info("Linked card %s to %s", tag_id, external_id)
        return TagLink.UPDATED

    def ping(self) -> bool:
        try:
            resp = self._http.get(f"{self._base_url}/rest/v1/", headers=self._headers, timeout=self._timeout)
        except requests.RequestException:
            return False
        return resp.status_code < 500
