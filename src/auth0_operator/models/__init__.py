"""
Pydantic models for the Auth0 custom resources.

The models type the spec envelope shared by all kinds (tenant reference,
policy, ``conf``/``init``) and the kind-specific lookup and reference
fields. Remote configuration stays a plain JSON value tree.
"""

from .client import ClientFind, ClientSpec
from .client_grant import ClientGrantConf
from .common import (
    DEFAULT_POLICY,
    ClientRef,
    EntityPolicy,
    EntitySpec,
    ResourceServerRef,
    SecretRef,
    TenantEntitySpec,
    TenantRef,
)
from .tenant import TenantAuth, TenantSpec

__all__ = [
    "ClientFind",
    "ClientGrantConf",
    "ClientRef",
    "ClientSpec",
    "DEFAULT_POLICY",
    "EntityPolicy",
    "EntitySpec",
    "ResourceServerRef",
    "SecretRef",
    "TenantAuth",
    "TenantEntitySpec",
    "TenantRef",
    "TenantSpec",
]
