"""
Pydantic models for A0Tenant resources.

A tenant carries the Management API credentials used by every resource
that references it.
"""

from pydantic import BaseModel, Field

from .common import EntitySpec, SecretRef


class TenantAuth(BaseModel):
    """Management API authentication for a tenant."""

    model_config = {"populate_by_name": True}

    domain: str | None = Field(None, description="Auth0 tenant domain")
    secret_ref: SecretRef | None = Field(
        None,
        alias="secretRef",
        description="Secret holding clientId and clientSecret of a machine-to-machine app",
    )


class TenantSpec(EntitySpec):
    """Specification of an A0Tenant resource."""

    name: str | None = Field(None, description="Name of the tenant")
    auth: TenantAuth | None = Field(None, description="Management API authentication")
