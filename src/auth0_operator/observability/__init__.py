"""
Observability utilities for the Auth0 operator.

This module provides metrics, tracing and structured logging
capabilities for production monitoring and troubleshooting.
"""

from .logging import OperatorLogger, setup_structured_logging
from .metrics import MetricsServer, metrics_collector
from .tracing import setup_tracing, shutdown_tracing, traced_handler

__all__ = [
    "MetricsServer",
    "metrics_collector",
    "OperatorLogger",
    "setup_structured_logging",
    "setup_tracing",
    "shutdown_tracing",
    "traced_handler",
]
