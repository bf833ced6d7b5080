from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Callable, Optional

from dateutil import tz


logger = logging.getLogger(__name__)


def next_run_at(now: dt.datetime, hour: int, minute: int, tz_name: str) -> dt.datetime:
    """Next occurrence of hour:minute wall-clock time in ``tz_name``, strictly after ``now``."""
    zone = tz.gettz(tz_name)
    if zone is None:
        raise ValueError(f"Unknown timezone: {tz_name}")
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    local_day = now.astimezone(zone).date()
    candidate = dt.datetime(local_day.year, local_day.month, local_day.day, hour, minute, tzinfo=zone)
    if candidate <= now:
        nxt = local_day + dt.timedelta(days=1)
        candidate = dt.datetime(nxt.year, nxt.month, nxt.day, hour, minute, tzinfo=zone)
    return candidate


def run_daily(
    job: Callable[[], object],
    hour: int,
    minute: int,
    tz_name: str,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], dt.datetime] = lambda: dt.datetime.now(dt.timezone.utc),
    max_runs: Optional[int] = None,
) -> None:
    """Fire ``job`` every day at the given local time until interrupted.

    A failing run is logged and the scheduler waits for the next day.
    """
    runs = 0
    while max_runs is None or runs < max_runs:
        target = next_run_at(clock(), hour, minute, tz_name)
        wait = max((target - clock()).total_seconds(), 0.0)
        logger.info("Next podcast run scheduled", extra={"at": target.isoformat(), "wait_seconds": int(wait)})
        sleep(wait)
        try:
            job()
        except Exception:  # noqa: BLE001
            # Reported by the job already
            logger.exception("Scheduled run failed")
        runs += 1
