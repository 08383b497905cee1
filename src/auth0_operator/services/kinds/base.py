"""
Descriptor types shared by all managed resource kinds.

A kind is a frozen record of the coroutines the generic reconciler calls.
Each coroutine receives a ReconcileContext describing the resource being
reconciled and the clients it may use.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from auth0_operator.errors import ValidationError
from auth0_operator.models import EntitySpec, TenantEntitySpec
from auth0_operator.services.pagination import PaginatedCollectionFetcher
from auth0_operator.utils.kubernetes import KubernetesGateway
from auth0_operator.utils.management_api import ManagementApiClient

TenantKey = tuple[str, str]


@dataclass
class ReconcileContext:
    """Everything a kind needs to talk to Auth0 and Kubernetes for one resource."""

    name: str
    namespace: str
    body: dict[str, Any]
    spec: EntitySpec
    api: ManagementApiClient
    gateway: KubernetesGateway
    fetcher: PaginatedCollectionFetcher
    status: dict[str, Any] = field(default_factory=dict)

    @property
    def conf(self) -> dict[str, Any] | None:
        return self.spec.conf

    @property
    def create_conf(self) -> dict[str, Any] | None:
        return self.spec.create_conf

    @property
    def last_conf(self) -> dict[str, Any]:
        return self.status.get("lastConf") or {}

    @property
    def domain(self) -> str:
        return self.api.domain


Finder = Callable[[ReconcileContext], Awaitable[str | None]]
CreateValidator = Callable[[ReconcileContext], Awaitable[str | None]]
Creator = Callable[[ReconcileContext], Awaitable[str]]
Updater = Callable[[ReconcileContext, str], Awaitable[None]]
Getter = Callable[[ReconcileContext, str], Awaitable[dict[str, Any] | None]]
Deleter = Callable[[ReconcileContext, str], Awaitable[None]]
StatusHook = Callable[[ReconcileContext, dict[str, Any]], Awaitable[dict[str, Any]]]


async def no_validation(ctx: ReconcileContext) -> str | None:
    return None


async def last_conf_status(
    ctx: ReconcileContext, snapshot: dict[str, Any]
) -> dict[str, Any]:
    return {"lastConf": snapshot}


def tenant_ref_key(spec: EntitySpec, namespace: str, name: str) -> TenantKey:
    """Tenant key of a resource that references its tenant through ``tenantRef``."""
    tenant_ref = spec.tenant_ref if isinstance(spec, TenantEntitySpec) else None
    if tenant_ref is None:
        raise ValidationError("missing a value for TenantRef", field="tenantRef")
    return (tenant_ref.namespace or namespace, tenant_ref.name)


@dataclass(frozen=True)
class ResourceKind:
    """
    Remote resource adapter for one custom resource kind.

    Attributes:
        name: Short name used in logs and metrics, e.g. ``client``
        kind: Kubernetes kind, e.g. ``A0Client``
        plural: Custom resource plural
        spec_model: Pydantic model of the resource spec
        find: Natural-key lookup of an existing remote entity
        validate_create: Returns an error message if the entity cannot be created
        create: Creates the entity from ``init`` or ``conf`` and returns its id
        update: Applies ``conf`` to an existing entity
        get: Returns the remote snapshot, or None if absent
        delete: Deletes the entity, treating absence as success
        apply_status: Turns a snapshot into the status fields to write
        tenant_key: Maps a resource to the key of its tenant
    """

    name: str
    kind: str
    plural: str
    spec_model: type[EntitySpec]
    find: Finder
    create: Creator
    update: Updater
    get: Getter
    delete: Deleter
    validate_create: CreateValidator = no_validation
    apply_status: StatusHook = last_conf_status
    tenant_key: Callable[[EntitySpec, str, str], TenantKey] = tenant_ref_key
