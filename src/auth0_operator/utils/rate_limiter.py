"""
Client-side rate limiting for Auth0 Management API calls.

Auth0 enforces per-tenant rate limits and answers with HTTP 429 once a
tenant's budget is used up. Throttling locally keeps a burst of
reconciliations (operator restart, periodic resync) below that budget:

1. Global rate limit: caps the total request rate of the operator
2. Per-tenant rate limit: one bucket per tenant domain
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from auth0_operator.observability.metrics import metrics_collector

logger = logging.getLogger(__name__)


@dataclass
class TokenBucket:
    """
    Async token bucket with continuous refill.

    Concurrent acquirers are serialized by an asyncio lock.
    """

    rate: float  # tokens per second
    capacity: int  # maximum burst capacity
    tokens: float = field(init=False)
    last_update: float = field(init=False)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def __post_init__(self):
        self.tokens = float(self.capacity)
        self.last_update = time.monotonic()

    async def acquire(self, timeout: float | None = None) -> bool:
        """
        Acquire a token, waiting if necessary.

        Args:
            timeout: Maximum time to wait for a token in seconds. None waits forever.

        Returns:
            True if a token was acquired, False if the timeout was reached
        """
        start_time = time.monotonic()

        async with self.lock:
            while True:
                now = time.monotonic()
                self.tokens = min(
                    self.capacity, self.tokens + (now - self.last_update) * self.rate
                )
                self.last_update = now

                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return True

                wait_time = (1.0 - self.tokens) / self.rate

                if timeout is not None:
                    remaining = timeout - (time.monotonic() - start_time)
                    if remaining <= 0:
                        return False
                    wait_time = min(wait_time, remaining)

                await asyncio.sleep(wait_time)

    def available_tokens(self) -> float:
        """Current number of available tokens (not synchronized)."""
        elapsed = time.monotonic() - self.last_update
        return min(self.capacity, self.tokens + elapsed * self.rate)


class RateLimiter:
    """
    Two-level rate limiter for Management API calls.

    Example:
        rate_limiter = RateLimiter(
            global_rate=10.0,
            global_burst=20,
            tenant_rate=2.0,
            tenant_burst=10,
        )

        await rate_limiter.acquire("example.eu.auth0.com")
    """

    def __init__(
        self,
        global_rate: float,
        global_burst: int,
        tenant_rate: float,
        tenant_burst: int,
    ):
        self.global_bucket = TokenBucket(global_rate, global_burst)
        self.tenant_buckets: dict[str, TokenBucket] = {}
        self.tenant_rate = tenant_rate
        self.tenant_burst = tenant_burst
        self._tenant_lock = asyncio.Lock()

        logger.info(
            f"Rate limiter initialized: "
            f"global={global_rate} TPS (burst={global_burst}), "
            f"tenant={tenant_rate} TPS (burst={tenant_burst})"
        )

    async def _get_tenant_bucket(self, tenant: str) -> TokenBucket:
        if tenant in self.tenant_buckets:
            return self.tenant_buckets[tenant]

        async with self._tenant_lock:
            if tenant not in self.tenant_buckets:
                self.tenant_buckets[tenant] = TokenBucket(
                    self.tenant_rate, self.tenant_burst
                )
                logger.debug(
                    f"Created rate limit bucket for tenant '{tenant}': "
                    f"{self.tenant_rate} TPS"
                )
            return self.tenant_buckets[tenant]

    async def acquire(self, tenant: str, timeout: float = 30.0) -> None:
        """
        Acquire a token from the tenant bucket and then from the global bucket.

        Args:
            tenant: Tenant domain the request is sent to
            timeout: Maximum time to wait for both tokens in seconds

        Raises:
            TimeoutError: If the tokens cannot be acquired within the timeout
        """
        start_time = time.monotonic()

        tenant_bucket = await self._get_tenant_bucket(tenant)
        if not await tenant_bucket.acquire(timeout=timeout):
            logger.warning(
                f"Tenant rate limit timeout for '{tenant}' after "
                f"{time.monotonic() - start_time:.2f}s"
            )
            raise TimeoutError(
                f"Tenant rate limit timeout for '{tenant}' "
                f"(limit: {self.tenant_rate} req/s)"
            )
        tenant_wait = time.monotonic() - start_time
        metrics_collector.record_rate_limit_wait("tenant", tenant_wait)

        remaining_timeout = max(0.1, timeout - tenant_wait)
        global_start = time.monotonic()
        if not await self.global_bucket.acquire(timeout=remaining_timeout):
            logger.warning(
                f"Global rate limit timeout after "
                f"{time.monotonic() - start_time:.2f}s (tenant: {tenant})"
            )
            raise TimeoutError(
                f"Global rate limit timeout (limit: {self.global_bucket.rate} req/s)"
            )
        metrics_collector.record_rate_limit_wait(
            "global", time.monotonic() - global_start
        )

    async def cleanup_idle_buckets(self, idle_threshold: float = 3600.0) -> int:
        """
        Drop tenant buckets that have not been used for ``idle_threshold`` seconds.

        Returns:
            Number of buckets removed
        """
        now = time.monotonic()

        async with self._tenant_lock:
            idle = [
                tenant
                for tenant, bucket in self.tenant_buckets.items()
                if (now - bucket.last_update) > idle_threshold
            ]
            for tenant in idle:
                del self.tenant_buckets[tenant]

        if idle:
            logger.info(f"Cleaned up {len(idle)} idle tenant rate limit buckets")
        return len(idle)
