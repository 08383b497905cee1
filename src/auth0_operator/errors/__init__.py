"""
Error handling module for the Auth0 operator.

This module provides an error hierarchy that integrates with kopf
and separates local validation failures, remote API rejections,
rate limiting and not-yet-resolvable references.
"""

from .operator_errors import (
    AuthResolutionError,
    ConfigurationError,
    KubernetesAPIError,
    OperatorError,
    RateLimitError,
    RemoteApiError,
    RetryError,
    ValidationError,
)

__all__ = [
    "OperatorError",
    "ValidationError",
    "RetryError",
    "RemoteApiError",
    "RateLimitError",
    "AuthResolutionError",
    "KubernetesAPIError",
    "ConfigurationError",
]
