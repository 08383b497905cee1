"""
Prometheus metrics for the Auth0 operator.

This module provides metrics collection for reconciliation outcomes,
Management API errors, token fetches and the pagination cache, and a
small aiohttp server exposing them.
"""

import logging
import time
from contextlib import asynccontextmanager

# aiohttp is provided transitively by kopf (used for its probes as well)
from aiohttp.web import Application, AppRunner, Request, Response, TCPSite
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Dedicated registry so the operator only exports its own metrics
REGISTRY = CollectorRegistry()

RECONCILIATION_TOTAL = Counter(
    "auth0_operator_reconciliation_total",
    "Total number of reconciliation attempts",
    ["resource_type", "operation", "result"],
    registry=REGISTRY,
)

RECONCILIATION_DURATION = Histogram(
    "auth0_operator_reconciliation_duration_seconds",
    "Time spent on reconciliation operations",
    ["resource_type", "operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

REMOTE_API_ERRORS = Counter(
    "auth0_operator_remote_api_errors_total",
    "Errors reported while reconciling, by event reason",
    ["resource_type", "reason"],
    registry=REGISTRY,
)

TOKEN_FETCH_TOTAL = Counter(
    "auth0_operator_token_fetch_total",
    "Management API token requests",
    ["result"],
    registry=REGISTRY,
)

PAGINATION_CACHE_TOTAL = Counter(
    "auth0_operator_pagination_cache_total",
    "Paginated listing cache lookups",
    ["kind", "result"],
    registry=REGISTRY,
)

RATE_LIMIT_WAIT_SECONDS = Histogram(
    "auth0_api_rate_limit_wait_seconds",
    "Time spent waiting for rate limit tokens",
    ["limit_type"],
    buckets=[0.001, 0.01, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)


class MetricsCollector:
    """Collects and manages metrics for the Auth0 operator."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

    @asynccontextmanager
    async def track_reconciliation(self, resource_type: str, operation: str):
        """
        Context manager to track reconciliation operations.

        Args:
            resource_type: Type of resource being reconciled
            operation: Either "reconcile" or "delete"
        """
        start_time = time.time()
        result = "error"

        try:
            yield
            result = "success"
        finally:
            RECONCILIATION_TOTAL.labels(
                resource_type=resource_type, operation=operation, result=result
            ).inc()
            RECONCILIATION_DURATION.labels(
                resource_type=resource_type, operation=operation
            ).observe(time.time() - start_time)

    def record_reconcile_error(self, resource_type: str, reason: str) -> None:
        REMOTE_API_ERRORS.labels(resource_type=resource_type, reason=reason).inc()

    def record_token_fetch(self, success: bool) -> None:
        TOKEN_FETCH_TOTAL.labels(result="success" if success else "failure").inc()

    def record_cache_lookup(self, kind: str, hit: bool) -> None:
        PAGINATION_CACHE_TOTAL.labels(kind=kind, result="hit" if hit else "miss").inc()

    def record_rate_limit_wait(self, limit_type: str, seconds: float) -> None:
        RATE_LIMIT_WAIT_SECONDS.labels(limit_type=limit_type).observe(seconds)


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            return Response(
                body=generate_latest(REGISTRY),
                headers={"Content-Type": CONTENT_TYPE_LATEST},
            )
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        self.runner = AppRunner(self.app)
        await self.runner.setup()

        self.site = TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")

    async def stop(self) -> None:
        """Stop the metrics server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Metrics server stopped")
        except Exception as e:
            logger.error(f"Error stopping metrics server: {e}")


# Global metrics collector instance
metrics_collector = MetricsCollector()
