"""
HTTP client wrapper with timeout, retry, and proxy support.

Provides a unified HTTP interface for the usage provider client.
"""

from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from quotawake.core.config import get_settings
from quotawake.core.errors import AuthenticationError, ProviderError, RateLimitError
from quotawake.core.logging import get_logger

logger = get_logger("http")


class HttpClient:
    """
    HTTP client with built-in retry, timeout, and error handling.

    Features:
    - Configurable timeout
    - Optional egress proxy
    - Exponential backoff retry for idempotent reads
    - Rate limit handling
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        headers: Optional[dict[str, str]] = None,
        proxy: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout or get_settings().http_timeout
        self.default_headers = headers or {}
        self.proxy = proxy
        self._transport = transport

        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialized sync HTTP client."""
        if self._client is None:
            client_kwargs: dict[str, Any] = {
                "timeout": self.timeout,
                "headers": self.default_headers,
            }
            if self.base_url:
                client_kwargs["base_url"] = self.base_url
            if self.proxy:
                client_kwargs["proxy"] = self.proxy
            if self._transport is not None:
                client_kwargs["transport"] = self._transport
            self._client = httpx.Client(**client_kwargs)
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _get(self, url: str, params, headers) -> httpx.Response:
        return self.client.get(url, params=params, headers=headers)

    def get(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        provider_name: str = "unknown",
    ) -> dict[str, Any]:
        """
        Make a GET request with retry logic.

        Args:
            url: Request URL (can be relative if base_url is set)
            params: Query parameters
            headers: Additional headers
            provider_name: Provider name for error reporting

        Returns:
            JSON response as dict

        Raises:
            ProviderError: On request failure
            RateLimitError: On 429 status
            AuthenticationError: On 401/403 status
        """
        try:
            logger.debug(f"GET {url} params={params}")
            response = self._get(url, params, headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout on GET {url}: {e}")
            raise ProviderError(
                f"Request timeout: {url}",
                provider=provider_name,
                recoverable=True,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Network error on GET {url}: {e}")
            raise ProviderError(
                f"Network error: {e}",
                provider=provider_name,
                recoverable=True,
            ) from e
        return self._handle_response(response, provider_name)

    def send(
        self,
        method: str,
        url: str,
        *,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        provider_name: str = "unknown",
    ) -> httpx.Response:
        """
        Send a single request without retry or status handling.

        Used for requests that consume quota, where the caller inspects the
        raw status itself. Transport failures still surface as ProviderError.
        """
        try:
            logger.debug(f"{method} {url}")
            return self.client.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(
                f"{method} {url} failed: {e}",
                provider=provider_name,
                recoverable=True,
            ) from e

    def _handle_response(
        self,
        response: httpx.Response,
        provider_name: str,
    ) -> dict[str, Any]:
        """Handle HTTP response and convert to dict."""
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Rate limit exceeded",
                provider=provider_name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"HTTP {response.status_code}: credential rejected",
                provider=provider_name,
            )

        if response.status_code >= 400:
            logger.error(f"HTTP {response.status_code}: {response.text[:200]}")
            raise ProviderError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                provider=provider_name,
                recoverable=response.status_code >= 500,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Invalid JSON from {provider_name}: {response.text[:200]}",
                provider=provider_name,
                recoverable=True,
            ) from e
