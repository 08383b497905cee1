"""Remote resource adapters, one ResourceKind per custom resource kind."""

from .base import ReconcileContext, ResourceKind
from .client import CLIENT_KIND
from .client_grant import CLIENT_GRANT_KIND
from .connection import CONNECTION_KIND
from .resource_server import RESOURCE_SERVER_KIND
from .tenant import TENANT_KIND

__all__ = [
    "CLIENT_GRANT_KIND",
    "CLIENT_KIND",
    "CONNECTION_KIND",
    "RESOURCE_SERVER_KIND",
    "ReconcileContext",
    "ResourceKind",
    "TENANT_KIND",
]
