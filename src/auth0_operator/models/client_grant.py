"""
Pydantic models for A0ClientGrant resources.

A client grant's ``conf`` references the client and the API it grants
access to. Only the reference fields are typed here, the rest of the
configuration is sent as written.
"""

from typing import Any

from pydantic import BaseModel, Field

from .common import ClientRef, ResourceServerRef


class ClientGrantConf(BaseModel):
    """The reference-bearing part of a client grant configuration."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    client_ref: ClientRef | None = Field(None, alias="clientRef")
    audience: ResourceServerRef | None = None
    scope: list[str] | None = None
    allow_any_organization: bool | None = None
    organization_usage: str | None = None

    @classmethod
    def from_conf(cls, conf: dict[str, Any] | None) -> "ClientGrantConf":
        return cls.model_validate(conf or {})
