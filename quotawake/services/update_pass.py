"""
Update pass: refresh every tracked account's usage snapshot once.

Accounts are processed strictly one after another with a fixed pause
between them to stay below the provider's own rate limits. Failures are
contained per account and only show up in the counters and logs.
"""

import time
from datetime import datetime
from typing import Callable, Optional

from quotawake.core.config import MonitorConfig
from quotawake.core.errors import EnumerationError
from quotawake.core.logging import LoggerMixin
from quotawake.core.timeutil import floor_minutes, now_utc
from quotawake.domain.models import Account, AggregateCounts, UsageWindow
from quotawake.services.interfaces import AccountStore, UsageFetcher
from quotawake.services.prober import WindowProber


class UpdatePass(LoggerMixin):
    """One sequential sweep over all accounts."""

    def __init__(
        self,
        store: AccountStore,
        fetcher: UsageFetcher,
        prober: WindowProber,
        config: Optional[MonitorConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.fetcher = fetcher
        self.prober = prober
        self.config = config or MonitorConfig()
        self._sleep = sleep
        self._clock = clock

    def run(self) -> AggregateCounts:
        """
        Refresh all eligible accounts.

        Returns:
            Counters for the pass

        Raises:
            EnumerationError: The account list could not be read
        """
        self.logger.info("Starting scheduled usage update for all accounts...")

        try:
            accounts = self.store.list_accounts()
        except Exception as e:
            raise EnumerationError("Failed to list accounts", cause=e) from e

        counts = AggregateCounts(total=len(accounts))

        for account in accounts:
            if not account.is_active or not account.is_tracked(self.config.required_scopes):
                counts.skipped += 1
                continue

            self._update_account(account, counts)

            self._sleep(self.config.account_delay_seconds)

        self.logger.info(
            f"Usage update completed: {counts.success} success, {counts.skipped} skipped, "
            f"{counts.initialized} initialized, {counts.failed} failed (Total: {counts.total})"
        )
        return counts

    def _update_account(self, account: Account, counts: AggregateCounts) -> None:
        try:
            usage = self.fetcher.fetch_usage(account.id)
        except Exception as e:
            counts.failed += 1
            self.logger.warning(f"Failed to update usage for account {account.name}: {e}")
            return

        if usage is None:
            counts.failed += 1
            self.logger.warning(f"No usage data returned for account: {account.name}")
            return

        try:
            self.store.put_usage_snapshot(account.id, usage)
        except Exception as e:
            counts.failed += 1
            self.logger.warning(f"Failed to save usage for account {account.name}: {e}")
            return

        if usage.five_hour is not None and self.check_window(account, usage.five_hour):
            counts.initialized += 1

        counts.success += 1
        self.logger.debug(f"Updated usage for account: {account.name}")

    def check_window(self, account: Account, window: UsageWindow) -> bool:
        """
        Inspect a five-hour window.

        A dormant window is handed to the prober. An active window close to
        its reset is only logged.

        Returns:
            True if a dormant window was initialized
        """
        try:
            if window.resets_at is None:
                self.logger.info(
                    f"Account {account.name} has no 5h window resets_at, "
                    "triggering initialization request..."
                )
                if self.prober.probe(account):
                    self.logger.info(f"Successfully initialized 5h window for account: {account.name}")
                    return True
                self.logger.warning(f"Failed to initialize 5h window for account: {account.name}")
                return False

            remaining = floor_minutes(window.resets_at - self._clock())
            if remaining <= self.config.reset_threshold_minutes:
                self.logger.warning(
                    f"Account {account.name} 5h window expires in {remaining} minutes "
                    f"(utilization: {window.utilization * 100:.1f}%, "
                    f"remaining: {window.remaining_percent}%)"
                )
            return False
        except Exception as e:
            self.logger.error(f"Error checking 5h window for account {account.name}: {e}")
            return False
