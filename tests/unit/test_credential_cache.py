"""Unit tests for the per-tenant credential cache."""

import asyncio
import base64
from collections import OrderedDict
from unittest.mock import AsyncMock, MagicMock

import pytest

from auth0_operator.errors import AuthResolutionError, RetryError
from auth0_operator.services.credential_cache import (
    BoundedEvictionPolicy,
    CredentialCache,
    NoEviction,
    TenantCredentials,
)
from auth0_operator.utils.management_api import ManagementApiClient

DOMAIN = "example.eu.auth0.com"
TENANT = ("auth0", "prod")


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def _tenant(domain: str | None = DOMAIN, secret_ref: dict | None = None) -> dict:
    auth = {}
    if domain:
        auth["domain"] = domain
    auth["secretRef"] = secret_ref if secret_ref is not None else {"name": "creds"}
    return {"metadata": {"name": "prod", "namespace": "auth0"}, "spec": {"auth": auth}}


def _secret(client_id: str | None = "m2m-id", client_secret: str | None = "m2m-secret"):
    data = {}
    if client_id:
        data["clientId"] = _b64(client_id)
    if client_secret:
        data["clientSecret"] = _b64(client_secret)
    return MagicMock(data=data)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_fetcher() -> AsyncMock:
    return AsyncMock(return_value=("access-token", 100.0))


@pytest.fixture
def tenant_gateway(gateway):
    gateway.get_custom_object.return_value = _tenant()
    gateway.read_secret.return_value = _secret()
    return gateway


@pytest.fixture
def cache(tenant_gateway, token_fetcher, clock) -> CredentialCache:
    return CredentialCache(tenant_gateway, token_fetcher=token_fetcher, clock=clock)


class TestTokenCaching:
    """Test token fetching and reuse."""

    @pytest.mark.asyncio
    async def test_fetches_token_with_decoded_credentials(self, cache, token_fetcher):
        token = await cache.get_access_token(TENANT)

        assert token == "access-token"
        token_fetcher.assert_awaited_once_with(DOMAIN, "m2m-id", "m2m-secret")

    @pytest.mark.asyncio
    async def test_reads_secret_from_tenant_namespace(self, cache, tenant_gateway):
        await cache.get_access_token(TENANT)

        tenant_gateway.get_custom_object.assert_awaited_once_with(
            "a0tenants", "auth0", "prod"
        )
        tenant_gateway.read_secret.assert_awaited_once_with("auth0", "creds")

    @pytest.mark.asyncio
    async def test_secret_namespace_override(self, cache, tenant_gateway):
        tenant_gateway.get_custom_object.return_value = _tenant(
            secret_ref={"name": "creds", "namespace": "vault"}
        )

        await cache.get_access_token(TENANT)

        tenant_gateway.read_secret.assert_awaited_once_with("vault", "creds")

    @pytest.mark.asyncio
    async def test_token_reused_until_ninety_percent_of_lifetime(
        self, cache, token_fetcher, clock
    ):
        """A 100s token is reused for 90s and refreshed afterwards."""
        await cache.get_access_token(TENANT)

        clock.now += 89
        await cache.get_access_token(TENANT)
        assert token_fetcher.await_count == 1

        clock.now += 1
        await cache.get_access_token(TENANT)
        assert token_fetcher.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh_fetches_new_token(self, cache, token_fetcher):
        await cache.get_access_token(TENANT)
        token_fetcher.return_value = ("fresh-token", 100.0)

        token = await cache.get_access_token(TENANT, force_refresh=True)

        assert token == "fresh-token"
        assert token_fetcher.await_count == 2

    @pytest.mark.asyncio
    async def test_credentials_resolved_once(self, cache, tenant_gateway, clock):
        await cache.get_access_token(TENANT)
        clock.now += 1000
        await cache.get_access_token(TENANT)

        assert tenant_gateway.get_custom_object.await_count == 1
        assert tenant_gateway.read_secret.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_token_request(
        self, tenant_gateway, clock
    ):
        """N simultaneous callers for one tenant produce a single fetch."""
        fetch_count = 0

        async def slow_fetcher(domain, client_id, client_secret):
            nonlocal fetch_count
            fetch_count += 1
            await asyncio.sleep(0.01)
            return "shared-token", 3600.0

        cache = CredentialCache(tenant_gateway, token_fetcher=slow_fetcher, clock=clock)

        tokens = await asyncio.gather(*(cache.get_access_token(TENANT) for _ in range(10)))

        assert tokens == ["shared-token"] * 10
        assert fetch_count == 1
        assert tenant_gateway.get_custom_object.await_count == 1

    @pytest.mark.asyncio
    async def test_get_domain(self, cache):
        assert await cache.get_domain(TENANT) == DOMAIN

    @pytest.mark.asyncio
    async def test_management_client_uses_cached_token(self, cache, token_fetcher):
        client = await cache.management_client(TENANT)

        assert isinstance(client, ManagementApiClient)
        assert client.domain == DOMAIN
        assert client.base_url == f"https://{DOMAIN}/api/v2/"
        assert await client.token_provider(False) == "access-token"
        assert token_fetcher.await_count == 1


class TestCredentialResolution:
    """Test failures while resolving tenant credentials."""

    @pytest.mark.asyncio
    async def test_missing_tenant_is_retried(self, cache, tenant_gateway):
        tenant_gateway.get_custom_object.return_value = None

        with pytest.raises(RetryError):
            await cache.get_access_token(TENANT)

    @pytest.mark.asyncio
    async def test_missing_domain(self, cache, tenant_gateway):
        tenant_gateway.get_custom_object.return_value = _tenant(domain=None)

        with pytest.raises(AuthResolutionError, match="auth.domain"):
            await cache.get_access_token(TENANT)

    @pytest.mark.asyncio
    async def test_missing_secret_ref(self, cache, tenant_gateway):
        tenant_gateway.get_custom_object.return_value = {
            "spec": {"auth": {"domain": DOMAIN}}
        }

        with pytest.raises(AuthResolutionError, match="auth.secretRef"):
            await cache.get_access_token(TENANT)

    @pytest.mark.asyncio
    async def test_missing_secret(self, cache, tenant_gateway):
        tenant_gateway.read_secret.return_value = None

        with pytest.raises(AuthResolutionError, match="missing secret"):
            await cache.get_access_token(TENANT)

    @pytest.mark.asyncio
    async def test_secret_without_client_secret(self, cache, tenant_gateway):
        tenant_gateway.read_secret.return_value = _secret(client_secret=None)

        with pytest.raises(AuthResolutionError, match="clientSecret"):
            await cache.get_access_token(TENANT)

    @pytest.mark.asyncio
    async def test_rejected_token_request_drops_entry(
        self, cache, token_fetcher, tenant_gateway
    ):
        """A rejected token request re-reads the secret on the next attempt."""
        token_fetcher.side_effect = AuthResolutionError("rejected")

        with pytest.raises(AuthResolutionError):
            await cache.get_access_token(TENANT)
        assert TENANT not in cache

        token_fetcher.side_effect = None
        assert await cache.get_access_token(TENANT) == "access-token"
        assert tenant_gateway.read_secret.await_count == 2


class TestEviction:
    """Test eviction policies."""

    def _entries(self, *last_used: float) -> OrderedDict:
        return OrderedDict(
            (("ns", f"t{i}"), TenantCredentials("d", "id", "secret", last_used=used))
            for i, used in enumerate(last_used)
        )

    def test_no_eviction(self):
        assert NoEviction().select(self._entries(0, 0, 0), now=10_000) == []

    def test_bounded_policy_evicts_idle_entries(self):
        policy = BoundedEvictionPolicy(max_entries=10, max_idle=60)

        evicted = policy.select(self._entries(0, 950, 990), now=1000)

        assert evicted == [("ns", "t0")]

    def test_bounded_policy_evicts_least_recently_used_overflow(self):
        policy = BoundedEvictionPolicy(max_entries=2, max_idle=None)

        evicted = policy.select(self._entries(1, 2, 3), now=4)

        assert evicted == [("ns", "t0")]

    @pytest.mark.asyncio
    async def test_cache_is_bounded(self, tenant_gateway, token_fetcher, clock):
        cache = CredentialCache(
            tenant_gateway,
            eviction_policy=BoundedEvictionPolicy(max_entries=1, max_idle=None),
            token_fetcher=token_fetcher,
            clock=clock,
        )

        await cache.get_access_token(("ns", "a"))
        await cache.get_access_token(("ns", "b"))

        assert len(cache) == 1
        assert ("ns", "b") in cache
        assert ("ns", "a") not in cache

    @pytest.mark.asyncio
    async def test_idle_tenant_evicted(self, tenant_gateway, token_fetcher, clock):
        cache = CredentialCache(
            tenant_gateway,
            eviction_policy=BoundedEvictionPolicy(max_entries=10, max_idle=60),
            token_fetcher=token_fetcher,
            clock=clock,
        )

        await cache.get_access_token(("ns", "a"))
        clock.now += 100
        await cache.get_access_token(("ns", "b"))

        assert ("ns", "a") not in cache
        assert ("ns", "b") in cache
