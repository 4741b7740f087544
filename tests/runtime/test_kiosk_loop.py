from __future__ import annotations

from src.attendance_kiosk.attendance_kiosk.core.enums import ReaderStatus
from src.attendance_kiosk.attendance_kiosk.core.exceptions import StorageError
from src.attendance_kiosk.attendance_kiosk.identities.registration import CardRegistration
from src.attendance_kiosk.attendance_kiosk.runtime.events import (
    PROBE_JOB,
    PULL_JOB,
    PUSH_JOB,
    ROLLOVER_JOB,
    ConnectivityChanged,
    ReaderStatusChanged,
    RemoteChanged,
    ResyncRequested,
    ScanReceived,
    Shutdown,
    TimerTick,
)
from src.attendance_kiosk.attendance_kiosk.runtime.feed import EventFeed
from src.attendance_kiosk.attendance_kiosk.runtime.loop import KioskLoop
from src.attendance_kiosk.attendance_kiosk.runtime.scheduler import build_scheduler


class _Validator:
    def __init__(self, fail_on=None):
        self.tokens = []
        self.fail_on = fail_on

    def process(self, token):
        if token == self.fail_on:
            raise StorageError("disk full")
        self.tokens.append(token)


class _Sync:
    def __init__(self):
        self.calls = []

    def request_pull(self):
        self.calls.append("pull")

    def request_push(self):
        self.calls.append("push")

    def notify_remote_change(self, table=None):
        self.calls.append(f"change:{table}")


class _Connectivity:
    def __init__(self):
        self.probes = 0

    def probe(self):
        self.probes += 1
        return True


def _loop(validator=None, *, active=True, rollovers=None, registration=None):
    sync = _Sync()
    connectivity = _Connectivity()
    feed = EventFeed()
    loop = KioskLoop(
        validator or _Validator(),
        sync,
        connectivity,
        feed,
        is_active=lambda: active,
        on_rollover=(lambda: rollovers.append(1)) if rollovers is not None else None,
        registration=registration,
    )
    return loop, sync, connectivity, feed


def test_scans_are_processed_in_order():
    validator = _Validator()
    loop, *_ = _loop(validator)
    for token in ("A", "B", "C"):
        loop.post(ScanReceived(token))

    assert loop.process_pending() == 3
    assert validator.tokens == ["A", "B", "C"]


def test_storage_error_does_not_stop_the_loop():
    validator = _Validator(fail_on="BAD")
    loop, *_ = _loop(validator)
    loop.post(ScanReceived("BAD"))
    loop.post(ScanReceived("OK"))

    loop.process_pending()

    assert validator.tokens == ["OK"]


def test_ticks_route_to_sync_only_when_active():
    rollovers = []
    loop, sync, connectivity, _ = _loop(rollovers=rollovers)
    for job in (PULL_JOB, PUSH_JOB, PROBE_JOB, ROLLOVER_JOB):
        loop.post(TimerTick(job))
    loop.process_pending()
    assert sync.calls == ["pull", "push"]
    assert connectivity.probes == 1
    assert rollovers == [1]

    idle, idle_sync, idle_conn, _ = _loop(active=False)
    idle.post(TimerTick(PULL_JOB))
    idle.post(TimerTick(PROBE_JOB))
    idle.post(RemoteChanged("students"))
    idle.process_pending()
    assert idle_sync.calls == []
    assert idle_conn.probes == 1


def test_reconnect_resync_and_change_notifications():
    loop, sync, _, feed = _loop()
    loop.post(ConnectivityChanged(True))
    loop.post(ResyncRequested())
    loop.post(RemoteChanged("schedules"))
    loop.post(ReaderStatusChanged(ReaderStatus.FAILED, "/dev/ttyS9", "missing"))

    loop.process_pending()

    assert sync.calls == ["push", "pull", "pull", "push", "change:schedules"]
    kinds = [(i["kind"], i.get("status")) for i in feed.since(0)]
    assert kinds == [("sync", None), ("reader", "failed")]


def test_armed_registration_takes_the_next_scan(remote, connectivity):
    validator = _Validator()
    registration = CardRegistration(remote, connectivity, is_active=lambda: True, request_pull=lambda: None)
    loop, _, _, feed = _loop(validator, registration=registration)
    registration.arm()
    loop.post(ScanReceived("NEWCARD"))
    loop.post(ScanReceived("AA11"))

    loop.process_pending()

    assert validator.tokens == ["AA11"]
    assert registration.captured_tag == "NEWCARD"
    assert [(i["kind"], i.get("tag_id")) for i in feed.since(0)] == [("registration", "NEWCARD")]


def test_background_thread_stops_on_shutdown():
    validator = _Validator()
    loop, *_ = _loop(validator)
    loop.start()
    loop.post(ScanReceived("A"))
    loop.stop()

    assert validator.tokens == ["A"]
    loop.post(Shutdown())
    assert loop.process_pending() == 0


def test_feed_since_returns_only_newer_items():
    feed = EventFeed(maxlen=3)
    for n in range(5):
        feed.sync_status({"op": "push", "n": n})

    assert [i["n"] for i in feed.since(0)] == [2, 3, 4]
    assert [i["n"] for i in feed.since(4)] == [4]


def test_scheduler_jobs_only_post_ticks():
    posted = []
    scheduler = build_scheduler(posted.append, pull_seconds=30, push_seconds=30, probe_seconds=10)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {PULL_JOB, PUSH_JOB, PROBE_JOB, ROLLOVER_JOB}
    jobs[PUSH_JOB].func()

    assert posted == [TimerTick(PUSH_JOB)]
