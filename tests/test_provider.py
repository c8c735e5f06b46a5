"""Tests for the HTTP provider client."""

import json
from datetime import datetime, timezone
from unittest.mock import Mock

import httpx
import pytest

from quotawake.core.config import Settings
from quotawake.core.errors import AuthenticationError, ProviderError, RateLimitError
from quotawake.domain.models import Account
from quotawake.services.provider import ProviderClient

from tests.helpers import make_account

USAGE_BODY = {
    "five_hour": {"utilization": 0.42, "resets_at": "2025-10-19T15:00:00.000000+00:00"},
    "seven_day": {"utilization": 0.1, "resets_at": "2025-10-23T08:00:00Z"},
    "seven_day_opus": None,
}


@pytest.fixture
def settings():
    return Settings(provider_base_url="https://provider.test", http_timeout=5)


@pytest.fixture
def store():
    store = Mock()
    store.get_account.return_value = make_account("1")
    return store


@pytest.fixture
def tokens():
    tokens = Mock()
    tokens.get_access_token.return_value = "token-abc"
    return tokens


def client_with(handler, store, tokens, settings) -> ProviderClient:
    return ProviderClient(store, tokens, settings=settings, transport=httpx.MockTransport(handler))


class TestFetchUsage:
    """Tests for ProviderClient.fetch_usage."""

    def test_parses_usage_windows(self, store, tokens, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json=USAGE_BODY)

        client = client_with(handler, store, tokens, settings)

        snapshot = client.fetch_usage("1")

        assert snapshot.five_hour.utilization == 0.42
        assert snapshot.five_hour.resets_at == datetime(2025, 10, 19, 15, 0, tzinfo=timezone.utc)
        assert snapshot.seven_day.resets_at == datetime(2025, 10, 23, 8, 0, tzinfo=timezone.utc)
        assert snapshot.fetched_at is not None

        request = seen["request"]
        assert request.url.path == "/api/oauth/usage"
        assert request.headers["Authorization"] == "Bearer token-abc"
        assert request.headers["anthropic-beta"] == "oauth-2025-04-20"

    def test_empty_usage_returns_none(self, store, tokens, settings):
        client = client_with(lambda r: httpx.Response(200, json={}), store, tokens, settings)

        assert client.fetch_usage("1") is None

    def test_empty_five_hour_object_is_dormant(self, store, tokens, settings):
        body = {"five_hour": {}, "seven_day": None}
        client = client_with(lambda r: httpx.Response(200, json=body), store, tokens, settings)

        snapshot = client.fetch_usage("1")

        assert snapshot is not None
        assert snapshot.five_hour.is_dormant

    def test_missing_token_raises(self, store, tokens, settings):
        tokens.get_access_token.return_value = None
        handler = Mock()
        client = client_with(handler, store, tokens, settings)

        with pytest.raises(AuthenticationError):
            client.fetch_usage("1")
        handler.assert_not_called()

    def test_server_error_raises(self, store, tokens, settings):
        client = client_with(lambda r: httpx.Response(500, text="oops"), store, tokens, settings)

        with pytest.raises(ProviderError):
            client.fetch_usage("1")

    def test_rate_limit_raises(self, store, tokens, settings):
        handler = lambda r: httpx.Response(429, headers={"Retry-After": "30"})
        client = client_with(handler, store, tokens, settings)

        with pytest.raises(RateLimitError) as exc_info:
            client.fetch_usage("1")
        assert exc_info.value.retry_after == 30


class TestSendProbeRequest:
    """Tests for ProviderClient.send_probe_request."""

    def test_posts_body_and_headers(self, store, tokens, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"usage": {"input_tokens": 8, "output_tokens": 1}})

        client = client_with(handler, store, tokens, settings)
        body = {"model": "m", "max_tokens": 10, "messages": [{"role": "user", "content": "Hi"}]}

        response = client.send_probe_request(body, "token-abc", None, {"user-agent": "probe/1"}, "1")

        assert response.status_code == 200
        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/v1/messages"
        assert json.loads(request.content) == body
        assert request.headers["user-agent"] == "probe/1"
        assert request.headers["Authorization"] == "Bearer token-abc"

    def test_error_status_is_returned_not_raised(self, store, tokens, settings):
        client = client_with(lambda r: httpx.Response(403, text="forbidden"), store, tokens, settings)

        response = client.send_probe_request({}, "t", None, {}, "1")

        assert response.status_code == 403
        assert response.body == "forbidden"

    def test_egress_path_from_account(self, tokens, settings):
        accounts = {
            "1": make_account("1"),
            "2": Account(id="2", name="proxied", proxy_url="http://proxy.local:3128"),
        }
        store = Mock()
        store.get_account.side_effect = accounts.get
        client = ProviderClient(store, tokens, settings=settings)

        assert client.get_egress_path("1") is None
        assert client.get_egress_path("2") == "http://proxy.local:3128"
        assert client.get_egress_path("missing") is None
        store.list_accounts.assert_not_called()
