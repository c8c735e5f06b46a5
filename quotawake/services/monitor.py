"""
Usage monitor service.

Drives repeated cycles of update pass, interval planning and a single-shot
timer. start() runs the first cycle inline; every later cycle is started
by the timer and re-arms it while the service is running.
"""

import threading
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Callable, Optional

from quotawake.core.config import MonitorConfig, Settings, get_monitor_config, get_settings
from quotawake.core.logging import get_logger
from quotawake.core.timeutil import format_timestamp, now_utc, round_minutes, to_local
from quotawake.domain.models import AggregateCounts, MonitorStatus
from quotawake.services.persistence import SQLiteAccountStore, create_account_store
from quotawake.services.planner import IntervalPlanner
from quotawake.services.prober import WindowProber
from quotawake.services.provider import ProviderClient
from quotawake.services.timer import SingleShotTimer
from quotawake.services.update_pass import UpdatePass

logger = get_logger("monitor")


class UsageMonitorService:
    """
    Adaptive usage monitor.

    State transitions (running flag and the pending timer) happen under a
    lock, so a cycle finishing while stop() runs cannot re-arm the timer.
    Cycles hold a second lock for their whole duration, so at most one
    update pass runs at a time. Each start() opens a new generation; a
    cycle from an earlier generation finishes but never re-arms.
    """

    def __init__(
        self,
        update_pass: UpdatePass,
        planner: IntervalPlanner,
        config: Optional[MonitorConfig] = None,
        timer: Optional[SingleShotTimer] = None,
        clock: Callable[[], datetime] = now_utc,
        resources: Optional[list[Any]] = None,
    ):
        """
        Args:
            update_pass: Sweep over all accounts
            planner: Picks the delay until the next cycle
            config: Monitor tunables
            timer: Single-shot timer driving later cycles
            clock: Current UTC time
            resources: Objects with a close() method, released by close()
        """
        self.update_pass = update_pass
        self.planner = planner
        self.config = config or MonitorConfig()
        self.timer = timer or SingleShotTimer()
        self._clock = clock
        self._resources = resources or []

        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._generation = 0
        self._running = False
        self._next_run_at: Optional[datetime] = None
        self._last_run_at: Optional[datetime] = None
        self._last_counts: Optional[AggregateCounts] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """
        Start monitoring. Runs the first cycle before returning.

        If a cycle from before the last stop() is still running, this waits
        for it to finish first.
        """
        with self._lock:
            if self._running:
                logger.warning("Usage monitor service is already running")
                return
            logger.info("Starting usage monitor service...")
            self._running = True
            self._generation += 1
            generation = self._generation

        self.run_cycle(generation)

        logger.info("Usage monitor service started (scheduling based on reset times)")

    def stop(self) -> None:
        """Cancel the pending timer. A cycle already running is not interrupted."""
        with self._lock:
            if not self._running:
                logger.warning("Usage monitor service is not running")
                return
            self.timer.cancel()
            self._next_run_at = None
            self._running = False
        logger.info("Usage monitor service stopped")

    def close(self) -> None:
        """Stop, release the timer backend and close the injected resources."""
        if self._running:
            self.stop()
        self.timer.shutdown()
        for resource in self._resources:
            resource.close()

    def run_cycle(self, generation: Optional[int] = None) -> None:
        """
        Run one update pass, plan the next one and arm the timer.

        Args:
            generation: Generation that scheduled this cycle. A cycle whose
                generation is no longer current is skipped. None runs in
                the current generation.
        """
        with self._cycle_lock:
            with self._lock:
                if generation is None:
                    generation = self._generation
                elif not self._running or generation != self._generation:
                    logger.debug("Skipping cycle scheduled before the last stop")
                    return

            try:
                counts = self.update_pass.run()
                self._last_counts = counts
                self._last_run_at = self._clock()
                interval = self.planner.next_interval()
            except Exception as e:
                logger.error(f"Error in usage monitor cycle: {e}", exc_info=True)
                interval = self.config.base_interval

            self._schedule_next(interval, generation)

    def _schedule_next(self, interval: timedelta, generation: int) -> None:
        with self._lock:
            if not self._running or generation != self._generation:
                logger.debug("Monitor stopped during cycle, not rescheduling")
                return
            self._next_run_at = self.timer.arm(interval, partial(self.run_cycle, generation))

        logger.info(
            f"Next usage update scheduled at "
            f"{format_timestamp(to_local(self._next_run_at), 'display')} "
            f"(in {round_minutes(interval)} minutes)"
        )

    def get_status(self) -> MonitorStatus:
        return MonitorStatus(
            is_running=self._running,
            base_interval_minutes=self.config.base_interval_minutes,
            after_reset_minutes=self.config.after_reset_minutes,
            reset_threshold_minutes=self.config.reset_threshold_minutes,
            next_run_at=self._next_run_at,
            last_run_at=self._last_run_at,
            last_counts=self._last_counts,
        )


def create_usage_monitor(
    settings: Optional[Settings] = None,
    config: Optional[MonitorConfig] = None,
    store: Optional[SQLiteAccountStore] = None,
) -> UsageMonitorService:
    """
    Wire the monitor with the SQLite account store and the HTTP provider client.

    Constructed once by the process entry point.
    """
    settings = settings or get_settings()
    config = config or get_monitor_config()

    store = store or create_account_store(settings)
    client = ProviderClient(store, store, settings=settings)
    prober = WindowProber(client, store, store, client, config=config)
    update_pass = UpdatePass(store, client, prober, config=config)
    planner = IntervalPlanner(store, config=config)

    return UsageMonitorService(
        update_pass,
        planner,
        config=config,
        timer=SingleShotTimer(timezone=settings.timezone),
        resources=[client],
    )
