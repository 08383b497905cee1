"""
Pydantic models for A0Client resources.
"""

from pydantic import BaseModel, Field

from .common import SecretRef, TenantEntitySpec


class ClientFind(BaseModel):
    """Adopt an existing client by its remote id instead of matching by name."""

    model_config = {"populate_by_name": True}

    client_id: str | None = Field(None, alias="clientId")


class ClientSpec(TenantEntitySpec):
    """Specification of an A0Client resource."""

    find: ClientFind | None = Field(None, description="Lookup of an existing client")
    secret_ref: SecretRef | None = Field(
        None,
        alias="secretRef",
        description="Secret that receives the clientId and clientSecret of the client",
    )
