"""
Interval planner.

Picks the delay until the next update pass from the persisted snapshots:
shortly after the earliest upcoming window reset when that is sooner than
the base interval, otherwise the base interval.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from quotawake.core.config import MonitorConfig
from quotawake.core.logging import LoggerMixin
from quotawake.core.timeutil import now_utc, round_minutes
from quotawake.domain.models import ScheduleEntry
from quotawake.services.interfaces import AccountStore


class IntervalPlanner(LoggerMixin):
    """Computes the next wake-up delay. Reads storage only, no network I/O."""

    def __init__(
        self,
        store: AccountStore,
        config: Optional[MonitorConfig] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.config = config or MonitorConfig()
        self._clock = clock

    def collect_entries(self, now: datetime) -> list[ScheduleEntry]:
        """Future trigger times for every active account's known window resets."""
        entries = []
        for account in self.store.list_accounts():
            if not account.is_active:
                continue

            snapshot = self.store.get_usage_snapshot(account.id)
            if snapshot is None:
                continue

            for window_type, window in snapshot.windows():
                if window.resets_at is None:
                    continue
                trigger_time = window.resets_at + self.config.after_reset
                if trigger_time > now:
                    entries.append(ScheduleEntry(account.name, trigger_time, window_type))
        return entries

    def next_interval(self) -> timedelta:
        """
        Delay until the next update pass.

        Never raises: any error falls back to the base interval.
        """
        base = self.config.base_interval
        try:
            now = self._clock()
            entries = self.collect_entries(now)

            if entries:
                nearest = min(entries, key=lambda e: e.trigger_time)
                interval = nearest.trigger_time - now
                if interval < base:
                    self.logger.info(
                        f"Next check scheduled for {nearest.account_name} "
                        f"{nearest.window_type.value} window reset "
                        f"(in {round_minutes(interval)} minutes)"
                    )
                    return max(interval, self.config.min_interval)

            self.logger.info(
                f"No upcoming resets, using base interval ({round_minutes(base)} minutes)"
            )
            return base
        except Exception as e:
            self.logger.error(f"Error calculating next interval: {e}", exc_info=True)
            return base
