"""
A0Connection: Auth0 identity connections.

``conf.enabled_clients`` holds client references (or raw client ids) that
are resolved to client ids before the configuration is sent.
"""

import logging
from typing import Any

from auth0_operator.constants import CONNECTION_PLURAL
from auth0_operator.models import ClientRef, TenantEntitySpec
from auth0_operator.services.references import resolve_client_id

from .base import ReconcileContext, ResourceKind

logger = logging.getLogger(__name__)

# Fields Auth0 does not allow to change after creation
IMMUTABLE_FIELDS = ("name", "strategy")


async def resolve_enabled_clients(
    ctx: ReconcileContext, conf: dict[str, Any]
) -> dict[str, Any]:
    """Copy of ``conf`` with ``enabled_clients`` resolved to client ids."""
    entries = conf.get("enabled_clients")
    if entries is None:
        return dict(conf)

    client_ids = []
    for entry in entries:
        if isinstance(entry, str):
            client_ids.append(entry)
        else:
            client_ids.append(
                await resolve_client_id(ctx, ClientRef.model_validate(entry))
            )
    return {**conf, "enabled_clients": client_ids}


async def find_connection(ctx: ReconcileContext) -> str | None:
    conf = ctx.create_conf
    if conf is None:
        return None

    connections = await ctx.fetcher.get_all(
        ctx.api, "connections", params={"fields": "id,name"}
    )
    for item in connections:
        if item.get("name") == conf.get("name"):
            return item.get("id")
    return None


async def create_connection(ctx: ReconcileContext) -> str:
    request = await resolve_enabled_clients(ctx, ctx.create_conf or {})
    logger.info(f"Creating connection in Auth0 with name {request.get('name')}")
    created = await ctx.api.post("connections", json=request)
    ctx.fetcher.invalidate("connections", ctx.domain)
    return created["id"]


async def update_connection(ctx: ReconcileContext, id: str) -> None:
    request = await resolve_enabled_clients(ctx, ctx.conf or {})
    for field in IMMUTABLE_FIELDS:
        request.pop(field, None)
    logger.info(f"Updating connection {id} in Auth0")
    await ctx.api.patch(f"connections/{id}", json=request)


async def get_connection(ctx: ReconcileContext, id: str) -> dict[str, Any] | None:
    return await ctx.api.get_or_none(f"connections/{id}")


async def delete_connection(ctx: ReconcileContext, id: str) -> None:
    logger.info(f"Deleting connection {id} from Auth0")
    await ctx.api.delete(f"connections/{id}")
    ctx.fetcher.invalidate("connections", ctx.domain)


CONNECTION_KIND = ResourceKind(
    name="connection",
    kind="A0Connection",
    plural=CONNECTION_PLURAL,
    spec_model=TenantEntitySpec,
    find=find_connection,
    create=create_connection,
    update=update_connection,
    get=get_connection,
    delete=delete_connection,
)
