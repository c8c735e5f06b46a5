"""
Collaborator interfaces consumed by the usage monitor.

The monitor never looks collaborators up at runtime; concrete
implementations are injected, which keeps them replaceable in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from quotawake.domain.models import Account, ProbeResponse, UsageSnapshot


class AccountStore(ABC):
    """Read access to tracked accounts, read/write access to usage snapshots."""

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List every known account, active or not."""
        pass

    def get_account(self, account_id: str) -> Optional[Account]:
        """Look up one account. Stores with an index should override this."""
        for account in self.list_accounts():
            if account.id == account_id:
                return account
        return None

    @abstractmethod
    def get_usage_snapshot(self, account_id: str) -> Optional[UsageSnapshot]:
        """Last persisted snapshot, or None if never fetched."""
        pass

    @abstractmethod
    def put_usage_snapshot(self, account_id: str, snapshot: UsageSnapshot) -> None:
        """Persist a freshly fetched snapshot."""
        pass


class UsageFetcher(ABC):
    """Retrieves current quota-window usage from the remote provider."""

    @abstractmethod
    def fetch_usage(self, account_id: str) -> Optional[UsageSnapshot]:
        """
        Fetch current usage.

        Returns None when the provider answers without usage data.
        Raises on transport or provider errors.
        """
        pass


class TokenProvider(ABC):
    """Hands out access credentials. Refreshing them is not our concern."""

    @abstractmethod
    def get_access_token(self, account_id: str) -> Optional[str]:
        pass


class RelayClient(ABC):
    """Egress and raw request primitive used by the window prober."""

    @abstractmethod
    def get_egress_path(self, account_id: str) -> Optional[str]:
        """Proxy URL for the account, or None for a direct connection."""
        pass

    @abstractmethod
    def send_probe_request(
        self,
        body: dict[str, Any],
        token: str,
        egress: Optional[str],
        headers: dict[str, str],
        account_id: str,
    ) -> ProbeResponse:
        """Send one request and return its raw status and body. No retries."""
        pass
