"""
Generic reconciliation of a custom resource against its Auth0 entity.

One pair of coroutines, ``reconcile_entity`` and ``delete_entity``, drives
every kind through the same state machine:

- No ``status.id``: adopt an existing entity found by natural key, or
  create one from ``init`` (falling back to ``conf``). The id is written to
  the status before anything else happens.
- With an id: apply ``conf`` when the policy allows updates, then read the
  entity back and store it as ``status.lastConf``.
- Deletion: delete the entity when the policy allows it and it still exists.

Failures are reported as Kubernetes events. Rate limits, unresolved
references and other operator errors are handed to kopf through
``as_kopf_error``. API and validation errors wait for the next change or
resync.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

import pydantic

from auth0_operator.constants import (
    EVENT_ACTION_DELETING,
    EVENT_ACTION_RECONCILE,
    EVENT_TYPE_NORMAL,
    EVENT_TYPE_WARNING,
    REASON_API_ERROR,
    REASON_AUTH_ERROR,
    REASON_CONFIGURATION_ERROR,
    REASON_INVALID,
    REASON_KUBERNETES_ERROR,
    REASON_RATE_LIMIT,
    REASON_RETRY,
    REASON_SUCCESS,
    REASON_UNKNOWN,
)
from auth0_operator.errors import (
    AuthResolutionError,
    ConfigurationError,
    KubernetesAPIError,
    OperatorError,
    RateLimitError,
    RemoteApiError,
    RetryError,
    ValidationError,
)
from auth0_operator.models import EntityPolicy, EntitySpec
from auth0_operator.observability.logging import OperatorLogger
from auth0_operator.observability.metrics import metrics_collector
from auth0_operator.services.credential_cache import CredentialCache
from auth0_operator.services.kinds.base import ReconcileContext, ResourceKind
from auth0_operator.services.pagination import PaginatedCollectionFetcher
from auth0_operator.utils.kubernetes import KubernetesGateway

logger = OperatorLogger(__name__)


@dataclass
class ReconcileDependencies:
    """Shared clients and caches, created once at operator startup."""

    credentials: CredentialCache
    fetcher: PaginatedCollectionFetcher
    gateway: KubernetesGateway


def _metadata(body: dict[str, Any]) -> tuple[str, str]:
    metadata = body.get("metadata") or {}
    return metadata.get("name", ""), metadata.get("namespace", "")


def _parse_spec(kind: ResourceKind, body: dict[str, Any]) -> EntitySpec:
    try:
        return kind.spec_model.model_validate(body.get("spec") or {})
    except pydantic.ValidationError as e:
        raise ValidationError(f"invalid {kind.kind} spec: {e}") from e


def _merge_patch(old: Any, new: Any) -> Any:
    """Merge patch turning ``old`` into ``new``, nulling keys that disappeared."""
    if not isinstance(old, dict) or not isinstance(new, dict):
        return new
    patch = {key: None for key in old if key not in new}
    for key, value in new.items():
        patch[key] = _merge_patch(old.get(key), value)
    return patch


def _event_note(error: Exception) -> str:
    if error.args and isinstance(error.args[0], str):
        return error.args[0]
    return str(error) or type(error).__name__


async def _build_context(
    kind: ResourceKind, body: dict[str, Any], deps: ReconcileDependencies
) -> ReconcileContext:
    name, namespace = _metadata(body)
    spec = _parse_spec(kind, body)
    tenant_key = kind.tenant_key(spec, namespace, name)
    api = await deps.credentials.management_client(tenant_key)
    return ReconcileContext(
        name=name,
        namespace=namespace,
        body=body,
        spec=spec,
        api=api,
        gateway=deps.gateway,
        fetcher=deps.fetcher,
        status=dict(body.get("status") or {}),
    )


async def _write_status(
    kind: ResourceKind, ctx: ReconcileContext, fields: dict[str, Any]
) -> None:
    patch = {key: _merge_patch(ctx.status.get(key), value) for key, value in fields.items()}
    await ctx.gateway.patch_status(kind.plural, ctx.namespace, ctx.name, patch)
    ctx.status.update(fields)


async def emit_event(
    gateway: KubernetesGateway,
    body: dict[str, Any],
    action: str,
    reason: str,
    event_type: str,
    note: str,
) -> None:
    """Record an event about ``body``. Failures are logged and never raised."""
    try:
        await gateway.create_event(body, action, reason, event_type, note)
    except Exception as e:
        name, namespace = _metadata(body)
        logger.critical(
            f"Failed to create {reason} event for {namespace}/{name}: {e}",
            resource_name=name,
            namespace=namespace,
            reason=reason,
        )


async def _handle_failure(
    kind: ResourceKind,
    body: dict[str, Any],
    deps: ReconcileDependencies,
    error: Exception,
    action: str,
    operation: str,
    duration: float,
) -> None:
    """Report a failed reconcile and decide whether kopf retries it."""
    name, namespace = _metadata(body)

    if isinstance(error, RateLimitError):
        reason, level = REASON_RATE_LIMIT, logging.WARNING
    elif isinstance(error, RemoteApiError):
        reason, level = REASON_API_ERROR, logging.ERROR
    elif isinstance(error, RetryError):
        reason, level = REASON_RETRY, logging.WARNING
    elif isinstance(error, ValidationError):
        reason, level = REASON_INVALID, logging.ERROR
    elif isinstance(error, AuthResolutionError):
        reason, level = REASON_AUTH_ERROR, logging.ERROR
    elif isinstance(error, KubernetesAPIError):
        reason, level = REASON_KUBERNETES_ERROR, logging.ERROR
    elif isinstance(error, ConfigurationError):
        reason, level = REASON_CONFIGURATION_ERROR, logging.ERROR
    else:
        reason, level = REASON_UNKNOWN, logging.ERROR

    logger.log_reconciliation_error(
        kind.name, name, namespace, error, duration, operation=operation, level=level
    )
    metrics_collector.record_reconcile_error(kind.name, reason)
    await emit_event(
        deps.gateway, body, action, reason, EVENT_TYPE_WARNING, _event_note(error)
    )

    if isinstance(error, RateLimitError):
        raise error.as_kopf_error() from error
    if isinstance(error, RemoteApiError | ValidationError):
        return
    if isinstance(error, OperatorError):
        raise error.as_kopf_error() from error
    raise error


async def _reconcile(
    kind: ResourceKind, body: dict[str, Any], deps: ReconcileDependencies
) -> None:
    ctx = await _build_context(kind, body, deps)
    policies = ctx.spec.policies
    remote_id = ctx.status.get("id")

    if not remote_id:
        remote_id = await kind.find(ctx)
        if remote_id:
            logger.info(
                f"{kind.kind} {ctx.namespace}/{ctx.name} adopted existing entity {remote_id}",
                remote_id=remote_id,
            )
        else:
            if EntityPolicy.CREATE not in policies:
                logger.warning(
                    f"{kind.kind} {ctx.namespace}/{ctx.name} does not exist in Auth0 "
                    f"and its policy does not allow Create"
                )
                return
            if ctx.create_conf is None:
                raise ValidationError("missing a value for conf", field="conf")

            message = await kind.validate_create(ctx)
            if message:
                raise ValidationError(message)

            remote_id = await kind.create(ctx)
            logger.info(
                f"{kind.kind} {ctx.namespace}/{ctx.name} created entity {remote_id}",
                remote_id=remote_id,
            )

        # Persist the id before anything else can fail
        await _write_status(kind, ctx, {"id": remote_id})

    if EntityPolicy.UPDATE in policies and ctx.conf is not None:
        await kind.update(ctx, remote_id)

    snapshot = await kind.get(ctx, remote_id)
    if snapshot is None:
        raise RemoteApiError(
            f"{kind.kind} {remote_id} no longer exists in Auth0", status_code=404
        )

    fields = await kind.apply_status(ctx, snapshot)
    fields["observedGeneration"] = (body.get("metadata") or {}).get("generation")
    await _write_status(kind, ctx, fields)


async def _delete(
    kind: ResourceKind, body: dict[str, Any], deps: ReconcileDependencies
) -> None:
    name, namespace = _metadata(body)
    remote_id = (body.get("status") or {}).get("id")
    if not remote_id:
        logger.info(f"{kind.kind} {namespace}/{name} has no Auth0 id, nothing to delete")
        return

    spec = _parse_spec(kind, body)
    if EntityPolicy.DELETE not in spec.policies:
        logger.info(
            f"{kind.kind} {namespace}/{name} policy does not allow Delete, "
            f"keeping {remote_id} in Auth0"
        )
        return

    ctx = await _build_context(kind, body, deps)
    if await kind.get(ctx, remote_id) is None:
        logger.info(f"{kind.kind} {namespace}/{name} entity {remote_id} is already absent")
        return

    await kind.delete(ctx, remote_id)
    logger.info(f"{kind.kind} {namespace}/{name} deleted entity {remote_id}")


async def reconcile_entity(
    kind: ResourceKind, body: dict[str, Any], deps: ReconcileDependencies
) -> None:
    """
    Bring the Auth0 entity of ``body`` in line with its spec.

    Raises:
        kopf.TemporaryError: On rate limits, unresolved references and
            retryable credential or Kubernetes failures
        kopf.PermanentError: On rejected credentials and configuration errors
        Exception: Any unexpected error, re-raised after reporting it
    """
    name, namespace = _metadata(body)
    start_time = time.time()
    logger.log_reconciliation_start(kind.name, name, namespace)

    try:
        async with metrics_collector.track_reconciliation(kind.name, "reconcile"):
            await _reconcile(kind, body, deps)
    except Exception as e:
        await _handle_failure(
            kind,
            body,
            deps,
            e,
            action=EVENT_ACTION_RECONCILE,
            operation="reconcile",
            duration=time.time() - start_time,
        )
        return

    logger.log_reconciliation_success(
        kind.name, name, namespace, time.time() - start_time
    )
    await emit_event(
        deps.gateway,
        body,
        EVENT_ACTION_RECONCILE,
        REASON_SUCCESS,
        EVENT_TYPE_NORMAL,
        f"{kind.kind} {namespace}/{name} reconciled",
    )


async def delete_entity(
    kind: ResourceKind, body: dict[str, Any], deps: ReconcileDependencies
) -> None:
    """
    Delete the Auth0 entity of ``body`` if its policy allows it.

    Raises:
        kopf.TemporaryError: On rate limits, unresolved references and
            retryable credential or Kubernetes failures
        kopf.PermanentError: On rejected credentials and configuration errors
        Exception: Any unexpected error, re-raised after reporting it
    """
    name, namespace = _metadata(body)
    start_time = time.time()
    logger.log_reconciliation_start(kind.name, name, namespace, operation="delete")

    try:
        async with metrics_collector.track_reconciliation(kind.name, "delete"):
            await _delete(kind, body, deps)
    except Exception as e:
        await _handle_failure(
            kind,
            body,
            deps,
            e,
            action=EVENT_ACTION_DELETING,
            operation="delete",
            duration=time.time() - start_time,
        )
        return

    logger.log_reconciliation_success(
        kind.name, name, namespace, time.time() - start_time, operation="delete"
    )
