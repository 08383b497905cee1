"""
A0ResourceServer: APIs protected by Auth0.

The API identifier (the token audience) is recorded in the status so
client grants can reference the resource server by name.
"""

import logging
from typing import Any

from auth0_operator.constants import RESOURCE_SERVER_PLURAL
from auth0_operator.models import TenantEntitySpec

from .base import ReconcileContext, ResourceKind

logger = logging.getLogger(__name__)


async def find_resource_server(ctx: ReconcileContext) -> str | None:
    conf = ctx.create_conf
    if conf is None or not conf.get("identifier"):
        return None

    resource_servers = await ctx.fetcher.get_all(
        ctx.api, "resource_servers", "resource-servers"
    )
    for item in resource_servers:
        if item.get("identifier") == conf["identifier"]:
            return item.get("id")
    return None


async def create_resource_server(ctx: ReconcileContext) -> str:
    conf = ctx.create_conf or {}
    logger.info(f"Creating resource server in Auth0 with identifier {conf.get('identifier')}")
    created = await ctx.api.post("resource-servers", json=conf)
    ctx.fetcher.invalidate("resource_servers", ctx.domain)
    return created["id"]


async def update_resource_server(ctx: ReconcileContext, id: str) -> None:
    request = {k: v for k, v in (ctx.conf or {}).items() if k != "identifier"}
    logger.info(f"Updating resource server {id} in Auth0")
    await ctx.api.patch(f"resource-servers/{id}", json=request)


async def get_resource_server(ctx: ReconcileContext, id: str) -> dict[str, Any] | None:
    return await ctx.api.get_or_none(f"resource-servers/{id}")


async def delete_resource_server(ctx: ReconcileContext, id: str) -> None:
    logger.info(f"Deleting resource server {id} from Auth0")
    await ctx.api.delete(f"resource-servers/{id}")
    ctx.fetcher.invalidate("resource_servers", ctx.domain)


async def apply_resource_server_status(
    ctx: ReconcileContext, snapshot: dict[str, Any]
) -> dict[str, Any]:
    return {"lastConf": snapshot, "identifier": snapshot.get("identifier")}


RESOURCE_SERVER_KIND = ResourceKind(
    name="resourceserver",
    kind="A0ResourceServer",
    plural=RESOURCE_SERVER_PLURAL,
    spec_model=TenantEntitySpec,
    find=find_resource_server,
    create=create_resource_server,
    update=update_resource_server,
    get=get_resource_server,
    delete=delete_resource_server,
    apply_status=apply_resource_server_status,
)
