"""
Paged Management API listings with a short-lived cache.

Auth0 list endpoints return at most 100 entities per page. Reconciling
many resources of one tenant would otherwise page through the same
listing again and again, so the complete listing is cached per kind and
tenant for a few minutes.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from auth0_operator.constants import (
    DEFAULT_PAGE_DELAY,
    DEFAULT_PAGINATION_CACHE_TTL,
    PAGE_SIZE,
)
from auth0_operator.observability.metrics import metrics_collector
from auth0_operator.utils.management_api import ManagementApiClient

logger = logging.getLogger(__name__)


def cache_key(kind: str, salt: str, params: dict[str, Any] | None = None) -> str:
    key = f"{kind}_all_{salt}"
    if params:
        key += "?" + "&".join(f"{k}={v}" for k, v in sorted(params.items()))
    return key


class PaginatedCollectionFetcher:
    """
    Fetch every page of a listing and cache the result.

    Concurrent misses for the same key wait on one lock, so only the first
    caller pages through the listing.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_PAGINATION_CACHE_TTL,
        page_delay: float = DEFAULT_PAGE_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.ttl = ttl
        self.page_delay = page_delay
        self.clock = clock
        self.sleep = sleep
        self._cache: dict[str, tuple[float, list[dict[str, Any]]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def invalidate(self, kind: str, salt: str) -> None:
        """Drop every cached listing of ``kind`` for one tenant."""
        base = cache_key(kind, salt)
        keys = [key for key in self._cache if key == base or key.startswith(base + "?")]
        for key in keys:
            del self._cache[key]
        if keys:
            logger.debug(f"Invalidated cached {kind} listing for {salt}")

    def _cached(self, key: str) -> list[dict[str, Any]] | None:
        cached = self._cache.get(key)
        if cached is None:
            return None
        expires_at, items = cached
        if self.clock() >= expires_at:
            del self._cache[key]
            return None
        return items

    async def get_all(
        self,
        api: ManagementApiClient,
        kind: str,
        path: str | None = None,
        salt: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Return every entity of a listing.

        Args:
            api: Client of the tenant to list from
            kind: Key holding the entities in each page, e.g. ``clients``
            path: Endpoint path, defaults to ``kind``
            salt: Cache discriminator, defaults to the tenant domain
            params: Extra query parameters such as ``fields``
        """
        key = cache_key(kind, salt or api.domain, params)

        items = self._cached(key)
        if items is not None:
            metrics_collector.record_cache_lookup(kind, hit=True)
            return items

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            items = self._cached(key)
            if items is not None:
                metrics_collector.record_cache_lookup(kind, hit=True)
                return items

            metrics_collector.record_cache_lookup(kind, hit=False)
            items = await self._fetch_pages(api, kind, path or kind, params or {})
            self._cache[key] = (self.clock() + self.ttl, items)
            return items

    async def _fetch_pages(
        self,
        api: ManagementApiClient,
        kind: str,
        path: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 0

        while True:
            query = {
                **params,
                "page": page,
                "per_page": PAGE_SIZE,
                "include_totals": "true",
            }
            data = await api.get(path, params=query)

            # Endpoints that ignore include_totals return a bare list
            if isinstance(data, list):
                items.extend(data)
                break

            batch = (data or {}).get(kind) or []
            items.extend(batch)

            start = data.get("start", page * PAGE_SIZE)
            length = data.get("length", len(batch))
            total = data.get("total", len(items))
            if not batch or start + length >= total:
                break

            page += 1
            await self.sleep(self.page_delay)

        logger.debug(f"Fetched {len(items)} {kind} from {api.domain} in {page + 1} page(s)")
        return items
