#!/usr/bin/env python3
"""
Auth0 Operator - Main entry point for the kopf-based Auth0 operator.

This operator keeps Auth0 tenants, clients, connections, resource servers
and client grants in sync with their custom resources.

Usage:
    python -m auth0_operator.operator
    # Or with kopf directly:
    kopf run -m auth0_operator.operator --all-namespaces

Environment Variables:
    AUTH0_OPERATOR_NAMESPACES: Comma-separated list of namespaces to watch
    AUTH0_OPERATOR_PARTITION: Only handle resources annotated with this partition
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

import logging
import random
import sys

import kopf
from auth0_operator.constants import FINALIZER

# Importing the handler modules registers their decorators with kopf
from auth0_operator.handlers import (  # noqa: F401
    client,
    client_grant,
    connection,
    resource_server,
    tenant,
)
from auth0_operator.observability.logging import setup_structured_logging
from auth0_operator.observability.metrics import MetricsServer
from auth0_operator.observability.tracing import setup_tracing, shutdown_tracing
from auth0_operator.services.credential_cache import (
    BoundedEvictionPolicy,
    CredentialCache,
)
from auth0_operator.services.label_aggregator import LabelAggregator
from auth0_operator.services.pagination import PaginatedCollectionFetcher
from auth0_operator.services.reconciler import ReconcileDependencies
from auth0_operator.settings import settings as operator_settings
from auth0_operator.utils.kubernetes import KubernetesGateway, get_kubernetes_client
from auth0_operator.utils.management_api import close_http_clients
from auth0_operator.utils.rate_limiter import RateLimiter

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
    )


def build_dependencies(gateway: KubernetesGateway) -> ReconcileDependencies:
    """Create the caches and clients shared by all handlers."""
    rate_limiter = RateLimiter(
        global_rate=operator_settings.api_rate_limit_tps,
        global_burst=operator_settings.api_rate_limit_burst,
        tenant_rate=operator_settings.api_tenant_rate_limit_tps,
        tenant_burst=operator_settings.api_tenant_rate_limit_burst,
    )
    credentials = CredentialCache(
        gateway,
        eviction_policy=BoundedEvictionPolicy(
            max_entries=operator_settings.credential_cache_max_entries,
            max_idle=operator_settings.credential_cache_max_idle_seconds,
        ),
        rate_limiter=rate_limiter,
        api_timeout=operator_settings.api_timeout_seconds,
    )
    fetcher = PaginatedCollectionFetcher(
        ttl=operator_settings.pagination_cache_ttl_seconds,
        page_delay=operator_settings.pagination_page_delay_seconds,
    )
    return ReconcileDependencies(
        credentials=credentials, fetcher=fetcher, gateway=gateway
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    Configures peering, the finalizer name and worker count, loads the
    Kubernetes configuration, starts the metrics server and tracing, and
    stores the shared dependencies in ``memo``.
    """
    logging.info("Starting Auth0 Operator...")
    settings.watching.reconnect_backoff = 1.0

    # Peering for leader election, each pod gets its own priority
    settings.peering.name = operator_settings.operator_name
    settings.peering.priority = random.randint(0, 32767)
    settings.persistence.finalizer = FINALIZER
    settings.execution.max_workers = 20

    watched_namespaces = operator_settings.watched_namespaces
    if watched_namespaces:
        logging.info(f"Watching namespaces: {', '.join(watched_namespaces)}")
    else:
        logging.info("Watching all namespaces (cluster-wide mode)")

    if operator_settings.partition:
        logging.info(f"Handling resources of partition '{operator_settings.partition}'")
    else:
        logging.info("Handling resources without a partition annotation")

    try:
        metrics_server = MetricsServer(
            port=operator_settings.metrics_port, host=operator_settings.metrics_host
        )
        await metrics_server.start()

        global _global_metrics_server
        _global_metrics_server = metrics_server
    except OSError as e:
        logging.error(f"Failed to start metrics server: {e}")
        logging.warning("Continuing without metrics server")

    setup_tracing(
        enabled=operator_settings.tracing_enabled,
        endpoint=operator_settings.tracing_endpoint,
        sample_rate=operator_settings.tracing_sample_rate,
    )

    gateway = KubernetesGateway(get_kubernetes_client())
    memo.deps = build_dependencies(gateway)
    memo.label_aggregator = LabelAggregator(
        gateway,
        namespaces=watched_namespaces,
        partition=operator_settings.partition,
    )


@kopf.on.cleanup()
async def cleanup_handler(**_) -> None:
    """Stop the metrics server, flush traces and close pooled HTTP clients."""
    logging.info("Shutting down Auth0 Operator...")

    global _global_metrics_server
    if _global_metrics_server:
        await _global_metrics_server.stop()
        _global_metrics_server = None

    await close_http_clients()
    shutdown_tracing()


@kopf.on.probe(id="tenants")
async def cached_tenants(memo: kopf.Memo, **_) -> int:
    """Number of tenants with cached credentials, reported on the liveness endpoint."""
    deps: ReconcileDependencies | None = getattr(memo, "deps", None)
    return len(deps.credentials) if deps else 0


@kopf.on.probe(id="rate_limit_buckets")
async def rate_limit_buckets(memo: kopf.Memo, **_) -> int:
    """Drop idle per-tenant rate limit buckets and report the remaining count."""
    deps: ReconcileDependencies | None = getattr(memo, "deps", None)
    if deps is None or deps.credentials.rate_limiter is None:
        return 0
    limiter = deps.credentials.rate_limiter
    await limiter.cleanup_idle_buckets()
    return len(limiter.tenant_buckets)


def main() -> None:
    """
    Main entry point for the operator.

    Configures logging and runs kopf for the watched namespaces, or
    cluster-wide when none are configured.
    """
    configure_logging()
    watched_namespaces = operator_settings.watched_namespaces

    try:
        if watched_namespaces:
            kopf.run(
                namespaces=watched_namespaces,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
            )
        else:
            kopf.run(
                clusterwide=True,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
            )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
