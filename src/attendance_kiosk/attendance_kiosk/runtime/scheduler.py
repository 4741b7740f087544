from __future__ import annotations

import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

from .events import PROBE_JOB, PULL_JOB, PUSH_JOB, ROLLOVER_JOB, TimerTick

logger = logging.getLogger(__name__)


def build_scheduler(
    post: Callable[[object], None],
    *,
    pull_seconds: int,
    push_seconds: int,
    probe_seconds: int,
) -> BackgroundScheduler:
    """Timer jobs only post ticks; the kiosk loop decides what to run."""
    scheduler = BackgroundScheduler(
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        }
    )
    scheduler.add_job(lambda: post(TimerTick(PROBE_JOB)), "interval", seconds=probe_seconds, id=PROBE_JOB)
    scheduler.add_job(lambda: post(TimerTick(PULL_JOB)), "interval", seconds=pull_seconds, id=PULL_JOB)
    scheduler.add_job(lambda: post(TimerTick(PUSH_JOB)), "interval", seconds=push_seconds, id=PUSH_JOB)
    # Drop yesterday's logs on kiosks left running overnight.
    scheduler.add_job(lambda: post(TimerTick(ROLLOVER_JOB)), "cron", hour=0, minute=1, id=ROLLOVER_JOB)
    logger.debug("Scheduler jobs: probe=%ss pull=%ss push=%ss", probe_seconds, pull_seconds, push_seconds)
    return scheduler
