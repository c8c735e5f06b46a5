"""
Usage provider client.

Talks to the provider's OAuth usage endpoint and sends probe requests to the
messages endpoint, each through the account's own egress proxy.
"""

from typing import Any, Optional

import httpx

from quotawake.core.config import Settings, get_settings
from quotawake.core.errors import AuthenticationError
from quotawake.core.http import HttpClient
from quotawake.core.logging import LoggerMixin
from quotawake.core.timeutil import now_utc
from quotawake.domain.models import ProbeResponse, UsageSnapshot
from quotawake.services.interfaces import AccountStore, RelayClient, TokenProvider, UsageFetcher


class ProviderClient(UsageFetcher, RelayClient, LoggerMixin):
    """
    HTTP client for the usage provider.

    One HttpClient is kept per egress path so proxied and direct accounts
    never share a connection pool.
    """

    name: str = "anthropic"

    def __init__(
        self,
        store: AccountStore,
        tokens: TokenProvider,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            store: Account store, used to resolve each account's proxy
            tokens: Source of access tokens
            settings: Application settings
            transport: Optional httpx transport (tests)
        """
        self.store = store
        self.tokens = tokens
        self.settings = settings or get_settings()
        self._transport = transport
        self._clients: dict[Optional[str], HttpClient] = {}

    def _client_for(self, egress: Optional[str]) -> HttpClient:
        client = self._clients.get(egress)
        if client is None:
            client = HttpClient(
                base_url=self.settings.provider_base_url,
                timeout=self.settings.http_timeout,
                proxy=egress,
                transport=self._transport,
            )
            self._clients[egress] = client
        return client

    def close(self) -> None:
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def get_egress_path(self, account_id: str) -> Optional[str]:
        account = self.store.get_account(account_id)
        return account.proxy_url if account else None

    def fetch_usage(self, account_id: str) -> Optional[UsageSnapshot]:
        """
        Fetch current window usage for an account.

        Raises:
            AuthenticationError: No token is available
            ProviderError: Transport or HTTP failure
        """
        token = self.tokens.get_access_token(account_id)
        if not token:
            raise AuthenticationError(
                f"No access token for account {account_id}",
                provider=self.name,
            )

        headers = {
            "Authorization": f"Bearer {token}",
            "anthropic-beta": self.settings.oauth_beta_header,
            "Accept": "application/json",
        }
        client = self._client_for(self.get_egress_path(account_id))
        data = client.get(
            self.settings.usage_path,
            headers=headers,
            provider_name=self.name,
        )

        snapshot = UsageSnapshot.from_dict(data, fetched_at=now_utc())
        if snapshot.is_empty:
            return None
        return snapshot

    def send_probe_request(
        self,
        body: dict[str, Any],
        token: str,
        egress: Optional[str],
        headers: dict[str, str],
        account_id: str,
    ) -> ProbeResponse:
        request_headers = {
            "Authorization": f"Bearer {token}",
            "anthropic-beta": self.settings.oauth_beta_header,
            "anthropic-version": self.settings.anthropic_version,
            "content-type": "application/json",
            **headers,
        }
        self.logger.debug(f"Sending probe request for {account_id} via {egress or 'direct'}")
        response = self._client_for(egress).send(
            "POST",
            self.settings.messages_path,
            json=body,
            headers=request_headers,
            provider_name=self.name,
        )
        return ProbeResponse(status_code=response.status_code, body=response.text)
