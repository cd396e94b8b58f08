"""Cron-style job registry with start/stop lifecycle.

Runs are handed to a single worker thread, so scheduled jobs never overlap
each other. A failing run is logged and the job keeps its schedule.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, FrozenSet, List, Optional

logger = logging.getLogger(__name__)

_FIELD_RANGES = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)
_SEARCH_LIMIT = timedelta(days=366 * 5)


def _parse_field(expression: str, low: int, high: int, name: str) -> FrozenSet[int]:
    values = set()
    for part in expression.split(","):
        part = part.strip()
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            step = int(step_text)
            if step < 1:
                raise ValueError(f"Invalid step in {name} field: {expression}")
        if part in ("*", ""):
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
        else:
            start = end = int(part)
        if start < low or end > high or start > end:
            raise ValueError(f"Value out of range in {name} field: {expression}")
        values.update(range(start, end + 1, step))
    if name == "weekday" and 7 in values:
        values.discard(7)
        values.add(0)
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    """Five-field cron expression. Weekday 0 is Sunday; 7 is accepted as Sunday too."""

    expression: str
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days: FrozenSet[int]
    months: FrozenSet[int]
    weekdays: FrozenSet[int]
    day_restricted: bool
    weekday_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        parts = expression.split()
        if len(parts) != 5:
            raise ValueError(f"Cron expression needs 5 fields: {expression!r}")
        parsed = [
            _parse_field(part, low, high, name) for part, (name, low, high) in zip(parts, _FIELD_RANGES)
        ]
        return cls(
            expression=expression,
            minutes=parsed[0],
            hours=parsed[1],
            days=parsed[2],
            months=parsed[3],
            weekdays=parsed[4],
            day_restricted=parts[2] != "*",
            weekday_restricted=parts[4] != "*",
        )

    def matches(self, moment: datetime) -> bool:
        if moment.minute not in self.minutes or moment.hour not in self.hours or moment.month not in self.months:
            return False
        return self._day_matches(moment)

    def next_after(self, moment: datetime) -> datetime:
        candidate = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = candidate + _SEARCH_LIMIT
        while candidate < limit:
            if candidate.month not in self.months:
                year = candidate.year + (1 if candidate.month == 12 else 0)
                month = 1 if candidate.month == 12 else candidate.month + 1
                candidate = candidate.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self._day_matches(candidate):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if candidate.hour not in self.hours:
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue
            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue
            return candidate
        raise ValueError(f"No run time found for {self.expression!r}")

    def _day_matches(self, moment: datetime) -> bool:
        cron_weekday = (moment.weekday() + 1) % 7
        day_ok = moment.day in self.days
        weekday_ok = cron_weekday in self.weekdays
        if self.day_restricted and self.weekday_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok


@dataclass
class ScheduledJob:
    name: str
    schedule: CronSchedule
    func: Callable[[], object]
    next_run: datetime
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None
    runs: int = 0
    failures: int = 0
    running: bool = field(default=False, repr=False)


class Scheduler:
    def __init__(
        self,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        poll_seconds: float = 30.0,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._poll_seconds = poll_seconds
        self._jobs: Dict[str, ScheduledJob] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def jobs(self) -> List[ScheduledJob]:
        with self._lock:
            return list(self._jobs.values())

    def add_job(self, name: str, expression: str, func: Callable[[], object]) -> ScheduledJob:
        schedule = CronSchedule.parse(expression)
        job = ScheduledJob(name=name, schedule=schedule, func=func, next_run=schedule.next_after(self._clock()))
        with self._lock:
            if name in self._jobs:
                raise ValueError(f"Job {name!r} is already registered")
            self._jobs[name] = job
        logger.info("Registered job %s (%s), next run %s", name, expression, job.next_run.isoformat())
        return job

    def _run_job(self, job: ScheduledJob) -> None:
        started = self._clock()
        logger.info("Running scheduled job %s", job.name)
        try:
            job.func()
        except Exception as exc:  # noqa: BLE001
            job.failures += 1
            job.last_error = str(exc)
            logger.exception("Scheduled job %s failed: %s", job.name, exc)
        else:
            job.last_error = None
            logger.info("Scheduled job %s finished in %.1fs", job.name, (self._clock() - started).total_seconds())
        finally:
            job.runs += 1
            job.last_run = started
            job.running = False

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scheduler")
        return self._executor

    def run_due(self, now: Optional[datetime] = None) -> List[Future]:
        """Submit every job whose next run time has passed; skip jobs still running."""
        now = now or self._clock()
        futures: List[Future] = []
        with self._lock:
            due = [job for job in self._jobs.values() if job.next_run <= now]
            for job in due:
                job.next_run = job.schedule.next_after(now)
                if job.running:
                    logger.warning("Job %s is still running; skipping this run", job.name)
                    continue
                job.running = True
                futures.append(self._ensure_executor().submit(self._run_job, job))
        return futures

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_due()
            self._stop_event.wait(self._poll_seconds)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="scheduler-loop", daemon=True)
        self._thread.start()
        logger.info("Scheduler started with %d jobs", len(self._jobs))

    def stop(self, wait: bool = True) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._poll_seconds + 1)
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("Scheduler stopped")
