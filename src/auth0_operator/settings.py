"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Operator identification
    operator_namespace: str = Field(
        default="auth0-system",
        description="Namespace where the operator is deployed",
        validation_alias="OPERATOR_NAMESPACE",
    )
    operator_name: str = Field(
        default="auth0-operator",
        description="Name of the operator deployment, used as the peering name",
        validation_alias="OPERATOR_NAME",
    )
    partition: str | None = Field(
        default=None,
        description=(
            "Only process resources whose kubernetes.auth0.com/partition "
            "annotation matches this value"
        ),
        validation_alias="AUTH0_OPERATOR_PARTITION",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    # Namespace watching
    namespaces: str = Field(
        default="",
        validation_alias="AUTH0_OPERATOR_NAMESPACES",
        description="Comma-separated list of namespaces to watch (empty = all namespaces)",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )
    tracing_enabled: bool = Field(
        default=False,
        validation_alias="OTEL_TRACING_ENABLED",
        description="Enable OpenTelemetry tracing",
    )
    tracing_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="OTLP gRPC collector endpoint",
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        validation_alias="OTEL_TRACES_SAMPLER_ARG",
        description="Fraction of root traces to sample",
    )

    # Auth0 Management API access
    api_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="AUTH0_API_TIMEOUT_SECONDS",
        description="Timeout for Auth0 Management API requests",
    )
    api_rate_limit_tps: float = Field(
        default=10.0,
        validation_alias="AUTH0_API_RATE_LIMIT_TPS",
        description="Global transactions per second limit for Management API calls",
    )
    api_rate_limit_burst: int = Field(
        default=20,
        validation_alias="AUTH0_API_RATE_LIMIT_BURST",
        description="Global burst capacity for Management API calls",
    )
    api_tenant_rate_limit_tps: float = Field(
        default=2.0,
        validation_alias="AUTH0_API_TENANT_RATE_LIMIT_TPS",
        description="Per-tenant transactions per second limit",
    )
    api_tenant_rate_limit_burst: int = Field(
        default=10,
        validation_alias="AUTH0_API_TENANT_RATE_LIMIT_BURST",
        description="Per-tenant burst capacity",
    )

    # Caching
    pagination_cache_ttl_seconds: float = Field(
        default=300.0,
        validation_alias="AUTH0_PAGINATION_CACHE_TTL_SECONDS",
        description="How long complete paged listings are cached",
    )
    pagination_page_delay_seconds: float = Field(
        default=0.05,
        validation_alias="AUTH0_PAGINATION_PAGE_DELAY_SECONDS",
        description="Delay between page requests",
    )
    credential_cache_max_entries: int = Field(
        default=256,
        validation_alias="AUTH0_CREDENTIAL_CACHE_MAX_ENTRIES",
        description="Maximum number of tenants held in the credential cache",
    )
    credential_cache_max_idle_seconds: float = Field(
        default=3600.0,
        validation_alias="AUTH0_CREDENTIAL_CACHE_MAX_IDLE_SECONDS",
        description="Evict tenant credentials unused for this long",
    )

    # Reconciliation behavior
    reconcile_interval_seconds: float = Field(
        default=3600.0,
        validation_alias="RECONCILE_INTERVAL_SECONDS",
        description="Interval between periodic resync reconciliations",
    )
    reconcile_jitter_max_seconds: float = Field(
        default=5.0,
        validation_alias="RECONCILE_JITTER_MAX_SECONDS",
        description="Maximum jitter in seconds for reconciliation scheduling",
    )

    @property
    def watched_namespaces(self) -> list[str] | None:
        """Parse watched namespaces from comma-separated string.

        Returns:
            List of namespace names, or None to watch all namespaces
        """
        if self.namespaces:
            return [ns.strip() for ns in self.namespaces.split(",") if ns.strip()]
        return None


# Global settings instance - initialized once at module import
settings = Settings()
