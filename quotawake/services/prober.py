"""
Window prober.

Wakes a dormant usage window by sending the cheapest request the provider
accepts, then re-fetches usage to confirm the window now has a reset time.
This is the only operation in the monitor that consumes quota.
"""

import json
import time
from typing import Any, Callable, Optional

from quotawake.core.config import MonitorConfig
from quotawake.core.logging import LoggerMixin
from quotawake.core.timeutil import format_timestamp
from quotawake.domain.models import Account
from quotawake.services.interfaces import AccountStore, RelayClient, TokenProvider, UsageFetcher

# Longest response body excerpt written to logs
BODY_EXCERPT = 200


class WindowProber(LoggerMixin):
    """Activates dormant five-hour windows."""

    def __init__(
        self,
        fetcher: UsageFetcher,
        store: AccountStore,
        tokens: TokenProvider,
        relay: RelayClient,
        config: Optional[MonitorConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.store = store
        self.tokens = tokens
        self.relay = relay
        self.config = config or MonitorConfig()
        self._sleep = sleep

    def build_request(self) -> dict[str, Any]:
        """The fixed, minimal request body."""
        return {
            "model": self.config.probe_model,
            "max_tokens": self.config.probe_max_tokens,
            "messages": [{"role": "user", "content": self.config.probe_prompt}],
        }

    def probe(self, account: Account) -> bool:
        """
        Try to activate the account's five-hour window.

        Returns:
            True only if a re-fetch shows the window with a reset time
        """
        try:
            self.logger.info(f"Initializing 5h window for {account.name}...")

            token = self.tokens.get_access_token(account.id)
            if not token:
                self.logger.warning(f"No valid token for {account.name}")
                return False

            egress = self.relay.get_egress_path(account.id)
            response = self.relay.send_probe_request(
                self.build_request(),
                token,
                egress,
                {"user-agent": self.config.probe_user_agent},
                account.id,
            )

            if response.status_code != 200:
                self.logger.error(
                    f"Init failed for {account.name}: HTTP {response.status_code} "
                    f"{response.body[:BODY_EXCERPT]}"
                )
                return False

            input_tokens, output_tokens = _token_usage(response.body)
            self.logger.info(
                f"Init request accepted for {account.name} "
                f"({input_tokens}/{output_tokens} tokens)"
            )
            return self._confirm(account)
        except Exception as e:
            self.logger.error(f"Init error for {account.name}: {e}")
            return False

    def _confirm(self, account: Account) -> bool:
        """Re-fetch usage after the settle delay until the window shows a reset time."""
        attempts = self.config.probe_confirm_attempts
        for attempt in range(1, attempts + 1):
            self._sleep(self.config.probe_settle_seconds)

            usage = self.fetcher.fetch_usage(account.id)
            window = usage.five_hour if usage else None
            if window is not None and window.resets_at is not None:
                self.store.put_usage_snapshot(account.id, usage)
                self.logger.info(
                    f"5h window for {account.name}: {window.utilization * 100:.1f}%, "
                    f"resets={format_timestamp(window.resets_at)}"
                )
                return True

            self.logger.debug(
                f"5h window for {account.name} not active yet "
                f"(attempt {attempt}/{attempts})"
            )

        return False


def _token_usage(body: str) -> tuple[int, int]:
    """Input/output token counts from a messages response, 0 if unreadable."""
    try:
        usage = json.loads(body).get("usage") or {}
    except (ValueError, AttributeError):
        return 0, 0
    return usage.get("input_tokens", 0), usage.get("output_tokens", 0)
