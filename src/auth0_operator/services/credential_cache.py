"""
Per-tenant Management API credentials and access tokens.

Each tenant resource (keyed by ``(namespace, name)``) resolves once to its
domain and the machine-to-machine client credentials stored in the
referenced secret. The access token obtained with those credentials is
cached and refreshed once 90% of its lifetime has passed.

Concurrent callers for the same tenant serialize on one lock per tenant,
so any number of simultaneous reconciliations produce a single token
request.
"""

import asyncio
import base64
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from auth0_operator.constants import (
    SECRET_CLIENT_ID_KEY,
    SECRET_CLIENT_SECRET_KEY,
    TENANT_PLURAL,
    TOKEN_REFRESH_RATIO,
)
from auth0_operator.errors import AuthResolutionError, RetryError
from auth0_operator.models import TenantSpec
from auth0_operator.observability.metrics import metrics_collector
from auth0_operator.utils.kubernetes import KubernetesGateway
from auth0_operator.utils.management_api import (
    ManagementApiClient,
    request_client_credentials_token,
)
from auth0_operator.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

TenantKey = tuple[str, str]

# (domain, client_id, client_secret) -> (access_token, lifetime seconds)
TokenFetcher = Callable[[str, str, str], Awaitable[tuple[str, float]]]


@dataclass
class TenantCredentials:
    """Resolved credentials and the cached token of one tenant."""

    domain: str
    client_id: str
    client_secret: str = field(repr=False)
    access_token: str | None = field(default=None, repr=False)
    expires_at: float = 0.0
    last_used: float = 0.0

    def token_valid(self, now: float) -> bool:
        return self.access_token is not None and now < self.expires_at


class EvictionPolicy:
    """Decides which cached tenants are dropped. Evicted tenants are re-resolved on next use."""

    def select(
        self, entries: "OrderedDict[TenantKey, TenantCredentials]", now: float
    ) -> list[TenantKey]:
        raise NotImplementedError


class NoEviction(EvictionPolicy):
    """Keep every tenant for the lifetime of the process."""

    def select(self, entries, now):
        return []


class BoundedEvictionPolicy(EvictionPolicy):
    """
    Evict tenants idle for longer than ``max_idle`` seconds, then the least
    recently used ones beyond ``max_entries``.
    """

    def __init__(self, max_entries: int = 256, max_idle: float | None = 3600.0):
        self.max_entries = max_entries
        self.max_idle = max_idle

    def select(self, entries, now):
        evicted = []
        if self.max_idle is not None:
            evicted = [
                key
                for key, entry in entries.items()
                if now - entry.last_used > self.max_idle
            ]

        overflow = len(entries) - len(evicted) - self.max_entries
        if overflow > 0:
            # Entries are kept in least-recently-used order
            remaining = [key for key in entries if key not in evicted]
            evicted.extend(remaining[:overflow])

        return evicted


def _decode_secret_value(data: dict[str, str] | None, key: str) -> str | None:
    value = (data or {}).get(key)
    if not value:
        return None
    return base64.b64decode(value).decode("utf-8")


class CredentialCache:
    """
    Map of tenant key to TenantCredentials with per-tenant locking.

    Args:
        gateway: Kubernetes access used to read tenants and their secrets
        eviction_policy: Policy deciding which tenants to drop
        token_fetcher: Coroutine requesting a client-credentials token
        rate_limiter: Limiter handed to the Management API clients
        api_timeout: Request timeout for Management API clients
        clock: Wall-clock source in epoch seconds
    """

    def __init__(
        self,
        gateway: KubernetesGateway,
        eviction_policy: EvictionPolicy | None = None,
        token_fetcher: TokenFetcher | None = None,
        rate_limiter: RateLimiter | None = None,
        api_timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.eviction_policy = eviction_policy or NoEviction()
        self.token_fetcher = token_fetcher or request_client_credentials_token
        self.rate_limiter = rate_limiter
        self.api_timeout = api_timeout
        self.clock = clock
        self._entries: OrderedDict[TenantKey, TenantCredentials] = OrderedDict()
        self._locks: dict[TenantKey, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: TenantKey) -> bool:
        return key in self._entries

    async def _resolve(self, key: TenantKey) -> TenantCredentials:
        namespace, name = key
        tenant = await self.gateway.get_custom_object(TENANT_PLURAL, namespace, name)
        if tenant is None:
            raise RetryError(f"Tenant {namespace}/{name} does not exist.")

        spec = TenantSpec.model_validate(tenant.get("spec") or {})
        auth = spec.auth
        if auth is None or not auth.domain:
            raise AuthResolutionError(
                f"Tenant {namespace}/{name} is missing a value for auth.domain."
            )
        if auth.secret_ref is None:
            raise AuthResolutionError(
                f"Tenant {namespace}/{name} is missing a value for auth.secretRef."
            )

        secret_namespace = auth.secret_ref.namespace or namespace
        secret = await self.gateway.read_secret(secret_namespace, auth.secret_ref.name)
        if secret is None:
            raise AuthResolutionError(
                f"Tenant {namespace}/{name} references missing secret "
                f"{secret_namespace}/{auth.secret_ref.name}."
            )

        client_id = _decode_secret_value(secret.data, SECRET_CLIENT_ID_KEY)
        client_secret = _decode_secret_value(secret.data, SECRET_CLIENT_SECRET_KEY)
        if not client_id or not client_secret:
            raise AuthResolutionError(
                f"Secret {secret_namespace}/{auth.secret_ref.name} is missing "
                f"{SECRET_CLIENT_ID_KEY} or {SECRET_CLIENT_SECRET_KEY}."
            )

        logger.debug(
            f"Resolved credentials for tenant {namespace}/{name}",
            extra={"tenant": auth.domain},
        )
        return TenantCredentials(
            domain=auth.domain, client_id=client_id, client_secret=client_secret
        )

    async def _entry(self, key: TenantKey, force_refresh: bool) -> TenantCredentials:
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = await self._resolve(key)
                self._entries[key] = entry

            now = self.clock()
            if force_refresh or not entry.token_valid(now):
                try:
                    token, lifetime = await self.token_fetcher(
                        entry.domain, entry.client_id, entry.client_secret
                    )
                except AuthResolutionError:
                    metrics_collector.record_token_fetch(success=False)
                    # Re-read the secret next time, it may have been rotated
                    self._entries.pop(key, None)
                    raise
                metrics_collector.record_token_fetch(success=True)
                entry.access_token = token
                entry.expires_at = now + lifetime * TOKEN_REFRESH_RATIO
                logger.info(
                    f"Obtained Management API token for {entry.domain}",
                    extra={"tenant": entry.domain},
                )

            entry.last_used = now
            self._entries.move_to_end(key)

        self._evict()
        return entry

    def _evict(self) -> None:
        for key in self.eviction_policy.select(self._entries, self.clock()):
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            self._entries.pop(key, None)
            self._locks.pop(key, None)
            logger.debug(f"Evicted credentials of tenant {key[0]}/{key[1]}")

    async def get_access_token(
        self, tenant_key: TenantKey, force_refresh: bool = False
    ) -> str:
        """
        Return a valid access token for the tenant, fetching one if needed.

        Raises:
            RetryError: If the tenant resource does not exist yet
            AuthResolutionError: If the domain or credentials cannot be
                resolved or the token request is rejected
        """
        entry = await self._entry(tenant_key, force_refresh)
        return entry.access_token

    async def get_domain(self, tenant_key: TenantKey) -> str:
        entry = await self._entry(tenant_key, force_refresh=False)
        return entry.domain

    async def management_client(self, tenant_key: TenantKey) -> ManagementApiClient:
        """Build a Management API client authenticated through this cache."""
        domain = await self.get_domain(tenant_key)

        async def token_provider(force_refresh: bool) -> str:
            return await self.get_access_token(tenant_key, force_refresh=force_refresh)

        return ManagementApiClient(
            domain,
            token_provider,
            rate_limiter=self.rate_limiter,
            timeout=self.api_timeout,
        )
