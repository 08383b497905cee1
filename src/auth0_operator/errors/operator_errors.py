"""
Operator error hierarchy with categorization and retry logic.

This module defines the error types used throughout the Auth0 operator,
providing clear categorization and integration with kopf's retry mechanisms.
"""

import time

import kopf

from auth0_operator.constants import RATE_LIMIT_MIN_DELAY, RETRY_REQUEUE_DELAY


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 30,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (validation, api, configuration, external)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.delay = delay
        self.user_action = user_action
        self.cause = cause

    def as_kopf_error(self):
        """Convert to appropriate kopf exception type."""
        if self.retryable:
            return kopf.TemporaryError(str(self), delay=self.delay)
        else:
            return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ValidationError(OperatorError):
    """A required local field is missing or invalid. No remote call is made."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        action = user_action or "Check resource specification and fix validation errors"
        if field:
            message = f"Validation error in field '{field}': {message}"
        self.field = field
        super().__init__(
            message=message, category="validation", retryable=False, user_action=action
        )


class RetryError(OperatorError):
    """A referenced resource cannot be resolved yet; reconcile again later."""

    def __init__(self, message: str, delay: int = RETRY_REQUEUE_DELAY):
        super().__init__(
            message=message,
            category="retry",
            retryable=True,
            delay=delay,
            user_action=None,
        )


class RemoteApiError(OperatorError):
    """The Auth0 Management API rejected a call."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        response_body: str | None = None,
    ):
        if status_code:
            message = f"HTTP {status_code}: {message}"

        self.status_code = status_code
        self.error_code = error_code
        self.response_body = response_body

        super().__init__(
            message=message,
            category="external",
            retryable=True,
            delay=60,
            user_action=None,
        )

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    def body_preview(self, limit: int = 2048) -> str | None:
        """Return a truncated preview of the response body for logging."""

        if self.response_body is None:
            return None

        if len(self.response_body) <= limit:
            return self.response_body

        return f"{self.response_body[:limit]}...<truncated>"


class RateLimitError(RemoteApiError):
    """The Management API (or the local limiter) refused the call for rate reasons."""

    def __init__(
        self,
        message: str,
        reset_at: float | None = None,
        limit: int | None = None,
        remaining: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(
            message,
            status_code=429,
            error_code="too_many_requests",
            response_body=response_body,
        )
        self.reset_at = reset_at
        self.limit = limit
        self.remaining = remaining

    def requeue_delay(self, now: float | None = None) -> int:
        """Seconds until the limit resets, never less than one minute."""
        if self.reset_at is None:
            return RATE_LIMIT_MIN_DELAY
        current = time.time() if now is None else now
        return max(int(self.reset_at - current), RATE_LIMIT_MIN_DELAY)

    def as_kopf_error(self):
        return kopf.TemporaryError(str(self), delay=self.requeue_delay())


class AuthResolutionError(OperatorError):
    """Tenant credentials could not be resolved or were rejected."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(
            message=message,
            category="authorization",
            retryable=retryable,
            delay=60,
            user_action="Check the tenant auth domain and the referenced credentials secret",
        )


class KubernetesAPIError(OperatorError):
    """Error communicating with Kubernetes API."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        retryable: bool = True,
        status: int | None = None,
    ):
        self.status = status
        if reason:
            message = f"{message} (reason: {reason})"

        # Some K8s errors are not retryable
        non_retryable_reasons = {"Forbidden", "Unauthorized", "Invalid"}
        if reason in non_retryable_reasons:
            retryable = False

        super().__init__(
            message=message,
            category="kubernetes",
            retryable=retryable,
            delay=60,
            user_action="Check RBAC permissions and cluster connectivity",
        )


class ConfigurationError(OperatorError):
    """Error in operator or resource configuration."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct configuration",
        )
