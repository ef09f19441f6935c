"""
Daily Schedule — Fire a job once a day at a fixed UTC time.

Used by `release-mirror serve`. The default of 16:00 UTC matches the
original timer trigger. A job that raises is logged and the loop carries
on; the next day's run re-derives whatever was left undone.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, time as dtime, timedelta, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_AT = "16:00"


def parse_time_of_day(value: str) -> dtime:
    """Parse HH:MM (or HH:MM:SS) into a UTC time of day."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hour, minute = numbers[0], numbers[1]
    second = numbers[2] if len(numbers) == 3 else 0
    if not (0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60):
        raise ValueError(f"Time of day out of range: {value!r}")
    return dtime(hour, minute, second, tzinfo=timezone.utc)


class DailySchedule:
    """Computes fire times and runs a job at each of them."""

    def __init__(self, at: str = DEFAULT_AT):
        self.at = parse_time_of_day(at)

    def next_run(self, now: Optional[datetime] = None) -> datetime:
        """First fire time strictly after `now`."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)

        candidate = datetime.combine(now.date(), self.at)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def seconds_until_next(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return max(0.0, (self.next_run(now) - now).total_seconds())

    def run_forever(
        self,
        job: Callable[[], object],
        stop_event: threading.Event,
        run_now: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> int:
        """
        Run `job` at every fire time until `stop_event` is set.

        Returns:
            Number of times the job was invoked
        """
        runs = 0
        if run_now and not stop_event.is_set():
            runs += self._invoke(job)

        while not stop_event.is_set():
            wait = self.seconds_until_next(clock())
            logger.info(f"[schedule] Next run at {self.next_run(clock()).isoformat()} (in {int(wait)}s)")
            if stop_event.wait(timeout=wait):
                break
            runs += self._invoke(job)

        logger.info("[schedule] Stopped")
        return runs

    def _invoke(self, job: Callable[[], object]) -> int:
        try:
            job()
        except Exception:
            logger.exception("[schedule] Scheduled run failed (will run again tomorrow)")
        return 1
