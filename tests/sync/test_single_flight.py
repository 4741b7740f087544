from __future__ import annotations

import threading

from src.attendance_kiosk.attendance_kiosk.sync.single_flight import CoalescingRunner


def test_triggers_during_a_run_coalesce_into_one_rerun():
    started = threading.Event()
    release = threading.Event()
    active = []
    overlaps = []

    def work():
        if active:
            overlaps.append(True)
        active.append(1)
        started.set()
        release.wait(timeout=5)
        active.pop()

    runner = CoalescingRunner("test", work)
    assert runner.request() is True
    assert started.wait(timeout=5)

    for _ in range(10):
        assert runner.request() is False

    release.set()
    assert runner.wait_idle(timeout=5)

    assert runner.runs == 2
    assert overlaps == []
    assert not runner.busy


def test_failing_run_does_not_wedge_the_runner():
    calls = []

    def work():
        calls.append(1)
        raise RuntimeError("boom")

    runner = CoalescingRunner("failing", work)
    runner.request()
    assert runner.wait_idle(timeout=5)
    runner.request()
    assert runner.wait_idle(timeout=5)

    assert len(calls) == 2
