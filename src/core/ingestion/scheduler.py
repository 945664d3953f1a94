#!/usr/bin/env python3
"""
Ingestion Scheduler - Handles timing of recurring ingestion passes.

Runs passes every base interval plus a random jitter, catching up
immediately after a long downtime and resuming the remaining wait after a
short one. The last successful pass time is kept in the content store so the
schedule survives restarts.
"""

import logging
import random
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

import pytz

from ..database.store import ContentStore
from ..exceptions import PassCancelled
from ..models.ingestion import PassResult
from .orchestrator import IngestionOrchestrator

logger = logging.getLogger(__name__)

BASE_INTERVAL = timedelta(hours=6)
MAX_JITTER = timedelta(minutes=30)


class SchedulerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class IngestionScheduler:
    """Drives ingestion passes on a jittered interval."""

    def __init__(self,
                 orchestrator: IngestionOrchestrator,
                 store: ContentStore,
                 base_interval: timedelta = BASE_INTERVAL,
                 max_jitter: timedelta = MAX_JITTER,
                 rng: Optional[random.Random] = None,
                 now_func: Optional[Callable[[], datetime]] = None,
                 timezone_str: str = "Asia/Tokyo"):
        """
        Initialize scheduler.

        Args:
            orchestrator: Runs the actual passes
            store: Holds the last successful pass time
            base_interval: Time between passes before jitter
            max_jitter: Upper bound (exclusive) of the random extra wait
            rng: Random source for jitter
            now_func: Clock returning an aware UTC datetime
            timezone_str: Timezone for displayed times
        """
        self.orchestrator = orchestrator
        self.store = store
        self.base_interval = base_interval
        self.max_jitter = max_jitter
        self.rng = rng or random.Random()
        self.now = now_func or _utc_now
        self.tz = pytz.timezone(timezone_str)

        self.state = SchedulerState.IDLE
        self.passes_run = 0
        self.last_result: Optional[PassResult] = None
        self.next_run_at: Optional[datetime] = None

    def compute_initial_wait(self, last_pass: Optional[datetime], now: datetime) -> timedelta:
        """
        How long to wait before the first pass after start.

        Args:
            last_pass: Completion time of the last successful pass, None if unknown
            now: Current time

        Returns:
            Zero when no pass is recorded or the base interval has already
            elapsed, otherwise the remainder of the base interval
        """
        if last_pass is None:
            return timedelta(0)

        elapsed = _as_utc(now) - _as_utc(last_pass)
        if elapsed >= self.base_interval:
            return timedelta(0)

        # A last pass in the future (clock skew) never delays more than one interval
        return min(self.base_interval - elapsed, self.base_interval)

    def compute_next_wait(self) -> timedelta:
        """Wait after a pass: base interval plus jitter in [0, max_jitter)."""
        jitter_seconds = self.rng.random() * self.max_jitter.total_seconds()
        return self.base_interval + timedelta(seconds=jitter_seconds)

    def next_due_time(self, last_pass: Optional[datetime]) -> Optional[datetime]:
        """Earliest time the next pass is due, None if due now."""
        if last_pass is None:
            return None
        return _as_utc(last_pass) + self.base_interval

    def _read_last_pass(self) -> Optional[datetime]:
        try:
            return self.store.get_last_pass_time()
        except Exception as e:
            logger.error(f"Could not read last pass time, running now: {e}")
            return None

    def _record_pass(self, result: PassResult) -> None:
        completed_at = self.now()
        result.finished_at = completed_at
        try:
            self.store.set_last_pass_time(completed_at)
        except Exception as e:
            logger.error(f"Could not record pass completion time (stored articles are kept): {e}")

    def run_once(self, stop_event: Optional[threading.Event] = None) -> PassResult:
        """
        Run a single pass and record its completion time.

        Raises:
            SourceListingError: If the pass fails; run state is not advanced
            PassCancelled: If stopped mid-pass; run state is not advanced
        """
        self.state = SchedulerState.RUNNING
        try:
            result = self.orchestrator.run_pass(stop_event)
        finally:
            self.state = SchedulerState.IDLE

        self.passes_run += 1
        self.last_result = result
        self._record_pass(result)
        return result

    def _wait(self, delay: timedelta, stop_event: threading.Event) -> bool:
        """Wait for delay; returns True if stop was requested."""
        self.next_run_at = self.now() + delay
        seconds = max(delay.total_seconds(), 0.0)
        if seconds > 0:
            logger.info(f"Next ingestion pass at {self.format_time(self.next_run_at)} (in {seconds / 3600:.2f}h)")
            self.state = SchedulerState.WAITING
            return stop_event.wait(seconds)
        return stop_event.is_set()

    def run(self, stop_event: threading.Event) -> None:
        """
        Run passes until the stop event is set.

        Pass failures are logged and never end the loop.
        """
        logger.info(
            f"Scheduler started (interval {self.base_interval}, jitter up to {self.max_jitter})"
        )

        last_pass = self._read_last_pass()
        initial_wait = self.compute_initial_wait(last_pass, self.now())
        if last_pass is None:
            logger.info("No previous pass recorded, running now")
        elif initial_wait == timedelta(0):
            logger.info(f"Last pass at {self.format_time(last_pass)} is overdue, catching up now")
        else:
            logger.info(f"Last pass at {self.format_time(last_pass)}, resuming schedule")

        stopped = self._wait(initial_wait, stop_event)

        while not stopped:
            try:
                result = self.run_once(stop_event)
                logger.info(f"Pass {self.passes_run} complete: {result.summary()}")
            except PassCancelled as e:
                logger.info(f"{e.message}; run state not advanced")
                break
            except Exception as e:
                logger.error(f"Ingestion pass failed, run state not advanced: {e}")

            stopped = self._wait(self.compute_next_wait(), stop_event)

        self.state = SchedulerState.STOPPED
        self.next_run_at = None
        logger.info("Scheduler stopped")

    def format_time(self, value: Optional[datetime]) -> str:
        if value is None:
            return "never"
        return _as_utc(value).astimezone(self.tz).strftime('%Y-%m-%d %H:%M:%S %Z')

    def get_stats(self) -> Dict[str, Any]:
        """
        Get scheduler status.

        Returns:
            Dictionary with state, timing and last pass information
        """
        last_pass = self._read_last_pass()
        now = self.now()
        next_due = self.next_run_at or self.next_due_time(last_pass)

        return {
            'state': self.state.value,
            'last_pass_at': self.format_time(last_pass) if last_pass else None,
            'elapsed_hours': round((_as_utc(now) - _as_utc(last_pass)).total_seconds() / 3600, 2) if last_pass else None,
            'next_due_at': self.format_time(next_due) if next_due else None,
            'due_now': self.compute_initial_wait(last_pass, now) == timedelta(0),
            'base_interval_hours': self.base_interval.total_seconds() / 3600,
            'max_jitter_minutes': self.max_jitter.total_seconds() / 60,
            'passes_run': self.passes_run,
            'last_result': self.last_result.summary() if self.last_result else None,
            'timezone': self.tz.zone
        }
