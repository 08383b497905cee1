"""
A0ClientGrant: grants allowing a client to request tokens for an API.

The grant references its client (``conf.clientRef``) and its API
(``conf.audience``). Auth0 has no natural-key lookup for grants, so both
find and get scan the cached listing of all grants of the tenant.
"""

import logging
from typing import Any

from auth0_operator.constants import CLIENT_GRANT_PLURAL
from auth0_operator.errors import ValidationError
from auth0_operator.models import ClientGrantConf, TenantEntitySpec
from auth0_operator.services.references import (
    resolve_client_id,
    resolve_resource_server_identifier,
)

from .base import ReconcileContext, ResourceKind

logger = logging.getLogger(__name__)

LISTING_KIND = "client_grants"
LISTING_PATH = "client-grants"


async def list_client_grants(ctx: ReconcileContext) -> list[dict[str, Any]]:
    return await ctx.fetcher.get_all(ctx.api, LISTING_KIND, LISTING_PATH)


async def find_client_grant(ctx: ReconcileContext) -> str | None:
    if ctx.create_conf is None:
        return None

    conf = ClientGrantConf.from_conf(ctx.create_conf)
    if conf.client_ref is None:
        raise ValidationError("missing a value for ClientRef", field="clientRef")
    if conf.audience is None:
        raise ValidationError("missing a value for Audience", field="audience")

    client_id = await resolve_client_id(ctx, conf.client_ref)
    audience = await resolve_resource_server_identifier(ctx, conf.audience)

    for grant in await list_client_grants(ctx):
        if grant.get("client_id") == client_id and grant.get("audience") == audience:
            logger.info(
                f"ClientGrant {ctx.namespace}/{ctx.name} found existing grant {grant.get('id')}"
            )
            return grant.get("id")

    logger.info(
        f"ClientGrant {ctx.namespace}/{ctx.name} found no grant for client "
        f"{client_id} and audience {audience}"
    )
    return None


async def validate_client_grant_create(ctx: ReconcileContext) -> str | None:
    conf = ClientGrantConf.from_conf(ctx.create_conf)
    if conf.client_ref is None:
        return "missing a value for ClientRef"
    if conf.audience is None:
        return "missing a value for Audience"
    if conf.scope is None:
        return "missing a value for Scope"
    return None


def _optional_fields(conf: ClientGrantConf) -> dict[str, Any]:
    request: dict[str, Any] = {}
    if conf.allow_any_organization is not None:
        request["allow_any_organization"] = conf.allow_any_organization
    if conf.organization_usage is not None:
        request["organization_usage"] = conf.organization_usage
    return request


async def create_client_grant(ctx: ReconcileContext) -> str:
    conf = ClientGrantConf.from_conf(ctx.create_conf)
    request = {
        "client_id": await resolve_client_id(ctx, conf.client_ref),
        "audience": await resolve_resource_server_identifier(ctx, conf.audience),
        "scope": list(conf.scope or []),
        **_optional_fields(conf),
    }

    logger.info(
        f"Creating client grant in Auth0 for client {request['client_id']} "
        f"and audience {request['audience']}"
    )
    created = await ctx.api.post(LISTING_PATH, json=request)
    ctx.fetcher.invalidate(LISTING_KIND, ctx.domain)
    return created["id"]


async def update_client_grant(ctx: ReconcileContext, id: str) -> None:
    conf = ClientGrantConf.from_conf(ctx.conf)
    request = _optional_fields(conf)
    if conf.scope is not None:
        request["scope"] = list(conf.scope)

    logger.info(f"Updating client grant {id} in Auth0")
    await ctx.api.patch(f"{LISTING_PATH}/{id}", json=request)
    # get() reads from the listing
    ctx.fetcher.invalidate(LISTING_KIND, ctx.domain)


async def get_client_grant(ctx: ReconcileContext, id: str) -> dict[str, Any] | None:
    for grant in await list_client_grants(ctx):
        if grant.get("id") == id:
            return grant

    logger.warning(f"Client grant {id} not found in Auth0")
    return None


async def delete_client_grant(ctx: ReconcileContext, id: str) -> None:
    logger.info(f"Deleting client grant {id} from Auth0")
    await ctx.api.delete(f"{LISTING_PATH}/{id}")
    ctx.fetcher.invalidate(LISTING_KIND, ctx.domain)


CLIENT_GRANT_KIND = ResourceKind(
    name="clientgrant",
    kind="A0ClientGrant",
    plural=CLIENT_GRANT_PLURAL,
    spec_model=TenantEntitySpec,
    find=find_client_grant,
    validate_create=validate_client_grant_create,
    create=create_client_grant,
    update=update_client_grant,
    get=get_client_grant,
    delete=delete_client_grant,
)
