"""Unit tests for the Management API client."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from auth0_operator.errors import AuthResolutionError, RateLimitError, RemoteApiError
from auth0_operator.utils.management_api import (
    management_base_url,
    request_client_credentials_token,
    token_url,
)

DOMAIN = "example.eu.auth0.com"


def test_urls():
    assert management_base_url(DOMAIN) == "https://example.eu.auth0.com/api/v2/"
    assert token_url(DOMAIN) == "https://example.eu.auth0.com/oauth/token"


class TestRequest:
    """Test authenticated requests and response decoding."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token_and_decodes_json(self, mock_api_client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"client_id": "abc"})

        client = mock_api_client(handler)
        result = await client.get("clients/abc", params={"fields": "client_id"})

        assert result == {"client_id": "abc"}
        assert seen[0].headers["Authorization"] == "Bearer token-1"
        assert seen[0].url.path == "/api/v2/clients/abc"
        assert seen[0].url.params["fields"] == "client_id"

    @pytest.mark.asyncio
    async def test_posts_json_body(self, mock_api_client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "con_1"})

        client = mock_api_client(handler)
        result = await client.post("connections", json={"name": "db"})

        assert result == {"id": "con_1"}
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"name": "db"}

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, mock_api_client):
        client = mock_api_client(lambda request: httpx.Response(204))

        assert await client.patch("tenants/settings", json={}) is None

    @pytest.mark.asyncio
    async def test_401_refreshes_token_once(self, mock_api_client):
        """A 401 triggers one forced token refresh and a single retry."""
        tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            tokens.append(request.headers["Authorization"])
            if len(tokens) == 1:
                return httpx.Response(401, json={"message": "Invalid token"})
            return httpx.Response(200, json={"ok": True})

        client = mock_api_client(handler)

        assert await client.get("tenants/settings") == {"ok": True}
        assert tokens == ["Bearer token-1", "Bearer token-2"]
        assert client.token_provider.await_args_list[1].args == (True,)

    @pytest.mark.asyncio
    async def test_second_401_is_an_error(self, mock_api_client):
        client = mock_api_client(
            lambda request: httpx.Response(401, json={"message": "Invalid token"})
        )

        with pytest.raises(RemoteApiError) as exc_info:
            await client.get("tenants/settings")
        assert exc_info.value.status_code == 401


class TestErrorMapping:
    """Test mapping of failed responses to operator errors."""

    @pytest.mark.asyncio
    async def test_404_carries_code_and_message(self, mock_api_client):
        body = {
            "statusCode": 404,
            "error": "Not Found",
            "message": "The client does not exist",
            "errorCode": "inexistent_client",
        }
        client = mock_api_client(lambda request: httpx.Response(404, json=body))

        with pytest.raises(RemoteApiError) as exc_info:
            await client.get("clients/missing")

        error = exc_info.value
        assert error.is_not_found
        assert error.error_code == "inexistent_client"
        assert "The client does not exist" in error.args[0]
        assert "inexistent_client" in error.response_body

    @pytest.mark.asyncio
    async def test_400_message(self, mock_api_client):
        body = {"statusCode": 400, "message": "Payload validation error"}
        client = mock_api_client(lambda request: httpx.Response(400, json=body))

        with pytest.raises(RemoteApiError) as exc_info:
            await client.post("clients", json={})

        assert exc_info.value.status_code == 400
        assert exc_info.value.args[0] == "HTTP 400: Payload validation error"

    @pytest.mark.asyncio
    async def test_429_is_rate_limit_with_reset(self, mock_api_client):
        headers = {
            "x-ratelimit-limit": "50",
            "x-ratelimit-remaining": "0",
            "x-ratelimit-reset": "1700000300",
        }
        client = mock_api_client(
            lambda request: httpx.Response(
                429, headers=headers, json={"message": "Too many requests"}
            )
        )

        with pytest.raises(RateLimitError) as exc_info:
            await client.get("clients")

        error = exc_info.value
        assert error.reset_at == 1700000300
        assert error.limit == 50
        assert error.remaining == 0
        assert error.requeue_delay(now=1700000000) == 300

    @pytest.mark.asyncio
    async def test_429_without_headers(self, mock_api_client):
        client = mock_api_client(lambda request: httpx.Response(429))

        with pytest.raises(RateLimitError) as exc_info:
            await client.get("clients")

        assert exc_info.value.reset_at is None
        assert exc_info.value.requeue_delay() == 60

    @pytest.mark.asyncio
    async def test_transport_error(self, mock_api_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = mock_api_client(handler)

        with pytest.raises(RemoteApiError) as exc_info:
            await client.get("clients")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_get_or_none_maps_404(self, mock_api_client):
        client = mock_api_client(lambda request: httpx.Response(404, json={}))

        assert await client.get_or_none("connections/con_1") is None

    @pytest.mark.asyncio
    async def test_get_or_none_propagates_other_errors(self, mock_api_client):
        client = mock_api_client(lambda request: httpx.Response(500, json={}))

        with pytest.raises(RemoteApiError):
            await client.get_or_none("connections/con_1")

    @pytest.mark.asyncio
    async def test_delete_ignores_404(self, mock_api_client):
        client = mock_api_client(lambda request: httpx.Response(404, json={}))

        await client.delete("clients/gone")

    @pytest.mark.asyncio
    async def test_delete_propagates_other_errors(self, mock_api_client):
        client = mock_api_client(lambda request: httpx.Response(403, json={}))

        with pytest.raises(RemoteApiError):
            await client.delete("clients/abc")


class TestRateLimiting:
    """Test the client-side rate limiter hook."""

    @pytest.mark.asyncio
    async def test_acquires_tenant_token_before_request(self, mock_api_client):
        limiter = AsyncMock()
        client = mock_api_client(
            lambda request: httpx.Response(200, json={}), rate_limiter=limiter
        )

        await client.get("clients")

        limiter.acquire.assert_awaited_once_with(DOMAIN)

    @pytest.mark.asyncio
    async def test_local_timeout_is_rate_limit_error(self, mock_api_client):
        limiter = AsyncMock()
        limiter.acquire.side_effect = TimeoutError("tenant limit")
        handler_calls = []
        client = mock_api_client(
            lambda request: handler_calls.append(request) or httpx.Response(200),
            rate_limiter=limiter,
        )

        with pytest.raises(RateLimitError):
            await client.get("clients")
        assert handler_calls == []


class TestClientCredentialsToken:
    """Test the client-credentials token request."""

    @pytest.mark.asyncio
    async def test_returns_token_and_lifetime(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"access_token": "tok", "expires_in": 7200, "token_type": "Bearer"}
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            token, lifetime = await request_client_credentials_token(
                DOMAIN, "m2m-id", "m2m-secret", http_client=http
            )

        assert token == "tok"
        assert lifetime == 7200
        assert str(seen[0].url) == f"https://{DOMAIN}/oauth/token"
        form = seen[0].content.decode()
        assert "grant_type=client_credentials" in form
        assert "client_id=m2m-id" in form
        assert "audience=https%3A%2F%2Fexample.eu.auth0.com%2Fapi%2Fv2%2F" in form

    @pytest.mark.asyncio
    async def test_default_lifetime(self):
        handler = lambda request: httpx.Response(200, json={"access_token": "tok"})  # noqa: E731

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            _, lifetime = await request_client_credentials_token(
                DOMAIN, "id", "secret", http_client=http
            )

        assert lifetime == 86400

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        handler = lambda request: httpx.Response(  # noqa: E731
            401, json={"error": "access_denied"}
        )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(AuthResolutionError) as exc_info:
                await request_client_credentials_token(
                    DOMAIN, "id", "wrong", http_client=http
                )

        assert exc_info.value.retryable is False
