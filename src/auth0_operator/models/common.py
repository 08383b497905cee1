"""
Common models shared across the Auth0 resource kinds.

This module defines the references between resources, the entity policy
and the spec/status envelope every tenant-scoped resource shares. The
kind-specific configuration (``conf``/``init``) is kept as a plain JSON
value tree and sent to the Management API as-is.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityPolicy(str, Enum):
    """Reconcile phases the operator is allowed to run for a resource."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


DEFAULT_POLICY = frozenset({EntityPolicy.CREATE, EntityPolicy.UPDATE})


class TenantRef(BaseModel):
    """Reference to an A0Tenant resource."""

    model_config = {"populate_by_name": True}

    name: str = Field(..., description="Name of the A0Tenant resource")
    namespace: str | None = Field(
        None, description="Namespace of the tenant, defaults to the referrer's"
    )


class SecretRef(BaseModel):
    """Reference to a Kubernetes Secret."""

    model_config = {"populate_by_name": True}

    name: str = Field(..., description="Name of the secret")
    namespace: str | None = Field(
        None, description="Namespace of the secret, defaults to the referrer's"
    )


class ClientRef(BaseModel):
    """Reference to a client, either by remote id or by A0Client resource."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str | None = Field(None, description="Auth0 client id")
    name: str | None = Field(None, description="Name of the A0Client resource")
    namespace: str | None = Field(None, description="Namespace of the A0Client")

    def __str__(self) -> str:
        if self.id:
            return self.id
        return f"{self.namespace or ''}/{self.name or ''}"


class ResourceServerRef(BaseModel):
    """Reference to a resource server by identifier, remote id or resource."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    identifier: str | None = Field(None, description="API audience identifier")
    id: str | None = Field(None, description="Auth0 resource server id")
    name: str | None = Field(None, description="Name of the A0ResourceServer")
    namespace: str | None = Field(None, description="Namespace of the A0ResourceServer")

    def __str__(self) -> str:
        if self.identifier:
            return self.identifier
        if self.id:
            return self.id
        return f"{self.namespace or ''}/{self.name or ''}"


class EntitySpec(BaseModel):
    """Fields every managed resource carries in its spec."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    policy: list[EntityPolicy] | None = Field(
        None, description="Allowed reconcile phases, defaults to Create and Update"
    )
    init: dict[str, Any] | None = Field(
        None, description="Configuration applied only when the entity is created"
    )
    conf: dict[str, Any] | None = Field(None, description="Desired configuration")

    @property
    def policies(self) -> frozenset[EntityPolicy]:
        if self.policy is None:
            return DEFAULT_POLICY
        return frozenset(self.policy)

    @property
    def create_conf(self) -> dict[str, Any] | None:
        """Configuration used on first creation: ``init`` when given, else ``conf``."""
        return self.init if self.init is not None else self.conf


class TenantEntitySpec(EntitySpec):
    """Spec envelope for resources that live inside a tenant."""

    tenant_ref: TenantRef = Field(..., alias="tenantRef")

