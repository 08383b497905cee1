"""
Auth0 Management API v2 client utilities.

The client handles:
- Bearer authentication with tokens from the credential cache
- One re-authentication attempt on HTTP 401
- Client-side rate limiting per tenant
- Mapping of HTTP failures to RemoteApiError / RateLimitError

httpx clients are shared per tenant domain and reused until the operator
shuts down.
"""

import asyncio
import json as jsonlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import httpx

from auth0_operator.errors import AuthResolutionError, RateLimitError, RemoteApiError

if TYPE_CHECKING:
    from auth0_operator.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# One pooled httpx client per tenant domain
_httpx_client_cache: dict[str, httpx.AsyncClient] = {}
_cache_lock = asyncio.Lock()

# Called with force_refresh, returns a bearer token
TokenProvider = Callable[[bool], Awaitable[str]]


def management_base_url(domain: str) -> str:
    return f"https://{domain}/api/v2/"


def token_url(domain: str) -> str:
    return f"https://{domain}/oauth/token"


async def get_http_client(domain: str, timeout: float = 30.0) -> httpx.AsyncClient:
    """Get or create the pooled httpx client for a tenant domain."""
    async with _cache_lock:
        cached = _httpx_client_cache.get(domain)
        if cached is not None and not cached.is_closed:
            return cached

        client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=10),
            follow_redirects=False,
        )
        _httpx_client_cache[domain] = client
        logger.debug(f"Created and cached httpx client for {domain}")
        return client


async def close_http_clients() -> None:
    """Close every cached httpx client. Called on operator shutdown."""
    async with _cache_lock:
        clients = list(_httpx_client_cache.values())
        _httpx_client_cache.clear()

    for client in clients:
        await client.aclose()


async def request_client_credentials_token(
    domain: str,
    client_id: str,
    client_secret: str,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> tuple[str, float]:
    """
    Obtain a Management API token with the client-credentials grant.

    Returns:
        Tuple of (access_token, lifetime in seconds)

    Raises:
        AuthResolutionError: If the token endpoint rejects the request
    """
    client = http_client or await get_http_client(domain, timeout)
    form = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret,
        "audience": management_base_url(domain),
    }

    try:
        response = await client.post(
            token_url(domain),
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        response.raise_for_status()
        token_data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(
            f"Token request for {domain} was rejected: {e}",
            extra={"tenant": domain, "http_status": e.response.status_code},
        )
        raise AuthResolutionError(
            f"Token request for {domain} failed with HTTP {e.response.status_code}",
            retryable=e.response.status_code >= 500,
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Token request for {domain} failed: {e}", extra={"tenant": domain})
        raise AuthResolutionError(f"Token request for {domain} failed: {e}") from e

    access_token = token_data.get("access_token")
    if not access_token:
        raise AuthResolutionError(f"Token response for {domain} has no access_token")

    return access_token, float(token_data.get("expires_in", 86400))


def _header_number(response: httpx.Response, name: str) -> float | None:
    value = response.headers.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_from_response(response: httpx.Response) -> RemoteApiError:
    """Build the domain error for a failed Management API response."""
    try:
        response_body = response.text or "<no content>"
    except Exception:  # pragma: no cover
        response_body = "<unavailable>"

    message = response.reason_phrase or "request failed"
    error_code = None
    try:
        payload = jsonlib.loads(response_body)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error") or message
        error_code = payload.get("errorCode")

    if response.status_code == 429:
        limit = _header_number(response, "x-ratelimit-limit")
        remaining = _header_number(response, "x-ratelimit-remaining")
        return RateLimitError(
            message,
            reset_at=_header_number(response, "x-ratelimit-reset"),
            limit=int(limit) if limit is not None else None,
            remaining=int(remaining) if remaining is not None else None,
            response_body=response_body,
        )

    return RemoteApiError(
        message,
        status_code=response.status_code,
        error_code=error_code,
        response_body=response_body,
    )


class ManagementApiClient:
    """
    Thin async client for one tenant's Management API.

    Paths are relative to ``https://{domain}/api/v2/``. Responses are
    returned as decoded JSON (``None`` for empty bodies).
    """

    def __init__(
        self,
        domain: str,
        token_provider: TokenProvider,
        rate_limiter: "RateLimiter | None" = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.domain = domain
        self.base_url = management_base_url(domain)
        self.token_provider = token_provider
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await get_http_client(self.domain, self.timeout)

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        token: str,
        json: Any,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        return await client.request(
            method=method,
            url=url,
            json=json,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an authenticated request to the Management API.

        Raises:
            RateLimitError: On HTTP 429 or a local rate limit timeout
            RemoteApiError: On any other API or transport failure
        """
        if self.rate_limiter:
            try:
                await self.rate_limiter.acquire(self.domain)
            except TimeoutError as e:
                raise RateLimitError(f"Rate limit timeout: {e}") from e

        url = f"{self.base_url}{path.lstrip('/')}"
        client = await self._get_client()

        try:
            token = await self.token_provider(False)
            response = await self._send(client, method, url, token, json, params)

            if response.status_code == 401:
                logger.warning(
                    f"Received 401 from {self.domain}, refreshing token",
                    extra={"tenant": self.domain},
                )
                token = await self.token_provider(True)
                response = await self._send(client, method, url, token, json, params)

        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {url} - {e}")
            raise RemoteApiError(f"API request failed: {e}", status_code=None) from e

        if response.is_error:
            error = _error_from_response(response)
            logger.error(
                f"Request failed: {method} {url} - {error}",
                extra={
                    "tenant": self.domain,
                    "http_status": response.status_code,
                    "response_body": error.body_preview(1024),
                },
            )
            raise error

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def get_or_none(
        self, path: str, params: dict[str, Any] | None = None
    ) -> Any:
        """GET that maps HTTP 404 to ``None``."""
        try:
            return await self.get(path, params=params)
        except RemoteApiError as e:
            if e.is_not_found:
                return None
            raise

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> None:
        """DELETE that treats an already absent entity as success."""
        try:
            await self.request("DELETE", path)
        except RemoteApiError as e:
            if not e.is_not_found:
                raise
            logger.debug(f"{path} was already deleted on {self.domain}")
