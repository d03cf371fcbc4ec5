"""Polling scheduler module.

This module handles:
- Running the poll cycle at a fixed interval with APScheduler
- Running the first cycle immediately at start-up
- Keeping at most one cycle in flight (late ticks are skipped, not queued)
- Stopping cleanly: no further ticks, serving endpoint closed

States: NEW -> IDLE <-> POLLING, IDLE/POLLING -> STOPPING -> STOPPED
"""

import enum
import logging
import sys
import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.executors.base import BaseExecutor, run_job
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

# Configure module logger
logger = logging.getLogger(__name__)

JOB_ID = "senec_poll"


class DaemonThreadExecutor(BaseExecutor):
    """Runs each job on its own daemon thread.

    APScheduler's default ThreadPoolExecutor uses non-daemon workers, which the
    interpreter joins at exit. A poll stuck on an unanswered appliance request
    would then keep the process alive after shutdown.
    """

    def _do_submit_job(self, job, run_times):
        def _run():
            try:
                events = run_job(job, job._jobstore_alias, run_times, self._logger.name)
            except BaseException:
                self._run_job_error(job.id, *sys.exc_info()[1:])
            else:
                self._run_job_success(job.id, events)

        threading.Thread(target=_run, name=f"{job.id}-worker", daemon=True).start()


class SchedulerState(enum.Enum):
    NEW = "new"
    IDLE = "idle"
    POLLING = "polling"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PollScheduler:
    """Fixed-interval driver for a poll callable.

    The in-flight guard lives in tick(): a tick that fires while the previous
    cycle is still running is logged and dropped. APScheduler's
    ``max_instances=1`` enforces the same thing at the job level.

    Attributes:
        interval: Poll interval in whole seconds
        state: Current SchedulerState
    """

    def __init__(
        self,
        poll: Callable[[], object],
        interval: int = 60,
        scheduler: Optional[BaseScheduler] = None,
        on_stop: Optional[Callable[[], None]] = None,
    ):
        """Initialize the scheduler.

        Args:
            poll: Callable running one poll cycle
            interval: Seconds between ticks, at least 1
            scheduler: Optional APScheduler instance (default BackgroundScheduler
                running jobs on DaemonThreadExecutor)
            on_stop: Called once while stopping, e.g. to close the HTTP server

        Raises:
            ValueError: If interval is below 1 second
        """
        if interval < 1:
            raise ValueError(f"Interval must be at least 1 second, got {interval}")

        self.interval = int(interval)
        self._poll = poll
        self._on_stop = on_stop
        if scheduler is None:
            scheduler = BackgroundScheduler(executors={"default": DaemonThreadExecutor()})
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._state = SchedulerState.NEW
        self.skipped_ticks = 0

    @property
    def interval_ms(self) -> int:
        return self.interval * 1000

    @property
    def state(self) -> SchedulerState:
        return self._state

    def start(self, run_immediately: bool = True) -> None:
        """Schedule the repeating job and start APScheduler.

        Args:
            run_immediately: Fire the first tick now instead of after one interval
        """
        with self._lock:
            if self._state is not SchedulerState.NEW:
                raise RuntimeError(f"Cannot start scheduler in state {self._state.value}")
            self._state = SchedulerState.IDLE

        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval),
            id=JOB_ID,
            name=f"SENEC poll every {self.interval}s",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now() if run_immediately else None,
        )
        self._scheduler.start()
        logger.debug(f"Scheduled poll every {self.interval_ms} ms")

    def tick(self) -> bool:
        """Run one poll cycle unless one is already running or we are stopping.

        Returns:
            True if a cycle ran, False if the tick was skipped
        """
        with self._lock:
            if self._state is SchedulerState.POLLING:
                self.skipped_ticks += 1
                logger.warning("Previous poll still running, skipping tick")
                return False
            if self._state is not SchedulerState.IDLE:
                logger.debug(f"Ignoring tick in state {self._state.value}")
                return False
            self._state = SchedulerState.POLLING

        try:
            self._poll()
        except Exception as e:
            logger.exception(f"Poll cycle raised: {e}")
        finally:
            with self._lock:
                if self._state is SchedulerState.POLLING:
                    self._state = SchedulerState.IDLE
        return True

    def stop(self) -> None:
        """Cancel further ticks and release resources.

        An in-flight appliance request is not interrupted; its result is
        simply no longer awaited.
        """
        with self._lock:
            if self._state in (SchedulerState.STOPPING, SchedulerState.STOPPED):
                return
            self._state = SchedulerState.STOPPING

        logger.info("Stopping scheduler")
        if self._scheduler.running:
            self._scheduler.remove_all_jobs()
            self._scheduler.shutdown(wait=False)

        try:
            if self._on_stop is not None:
                self._on_stop()
        finally:
            with self._lock:
                self._state = SchedulerState.STOPPED
