"""
A0Client: Auth0 applications.

Besides the configuration sync, a client can publish its ``client_id`` and
``client_secret`` into a Kubernetes secret named by ``spec.secretRef``.
"""

import base64
import copy
import logging
from typing import Any

from kubernetes import client

from auth0_operator.constants import (
    CLIENT_PLURAL,
    SECRET_CLIENT_ID_KEY,
    SECRET_CLIENT_SECRET_KEY,
)
from auth0_operator.models import ClientSpec
from auth0_operator.utils.kubernetes import is_owned_by, owner_reference

from .base import ReconcileContext, ResourceKind

logger = logging.getLogger(__name__)

LISTING_FIELDS = "client_id,name"


async def find_client(ctx: ReconcileContext) -> str | None:
    spec: ClientSpec = ctx.spec  # type: ignore[assignment]

    if spec.find is not None:
        if not spec.find.client_id:
            return None
        existing = await ctx.api.get_or_none(
            f"clients/{spec.find.client_id}", params={"fields": LISTING_FIELDS}
        )
        if existing is None:
            logger.info(
                f"Client {ctx.namespace}/{ctx.name} could not find client with id "
                f"{spec.find.client_id}"
            )
            return None
        logger.info(
            f"Client {ctx.namespace}/{ctx.name} found existing client {existing.get('name')}"
        )
        return existing.get("client_id")

    conf = ctx.create_conf
    if conf is None:
        return None

    clients = await ctx.fetcher.get_all(
        ctx.api, "clients", params={"fields": LISTING_FIELDS}
    )
    for item in clients:
        if item.get("name") == conf.get("name"):
            return item.get("client_id")
    return None


async def validate_client_create(ctx: ReconcileContext) -> str | None:
    if not (ctx.create_conf or {}).get("app_type"):
        return "missing a value for application type"
    return None


async def create_client(ctx: ReconcileContext) -> str:
    conf = ctx.create_conf or {}
    logger.info(f"Creating client in Auth0 with name {conf.get('name')}")
    created = await ctx.api.post("clients", json=conf)
    ctx.fetcher.invalidate("clients", ctx.domain)
    return created["client_id"]


def client_update_request(
    conf: dict[str, Any], last: dict[str, Any] | None
) -> dict[str, Any]:
    """Build the PATCH body, nulling metadata keys removed since the last sync."""
    request = copy.deepcopy(conf)
    metadata = request.get("client_metadata")
    last_metadata = (last or {}).get("client_metadata")
    if isinstance(metadata, dict) and isinstance(last_metadata, dict):
        for key in last_metadata:
            if key not in metadata:
                metadata[key] = None
    return request


async def update_client(ctx: ReconcileContext, id: str) -> None:
    logger.info(f"Updating client {id} in Auth0")
    await ctx.api.patch(
        f"clients/{id}", json=client_update_request(ctx.conf or {}, ctx.last_conf)
    )


async def get_client(ctx: ReconcileContext, id: str) -> dict[str, Any] | None:
    return await ctx.api.get_or_none(f"clients/{id}")


async def delete_client(ctx: ReconcileContext, id: str) -> None:
    logger.info(f"Deleting client {id} from Auth0")
    await ctx.api.delete(f"clients/{id}")
    ctx.fetcher.invalidate("clients", ctx.domain)


async def apply_client_secret(
    ctx: ReconcileContext, client_id: str | None, client_secret: str | None
) -> None:
    """Write the client credentials into the referenced secret if this client owns it."""
    spec: ClientSpec = ctx.spec  # type: ignore[assignment]
    secret_ref = spec.secret_ref
    if secret_ref is None:
        return

    namespace = secret_ref.namespace or ctx.namespace
    secret = await ctx.gateway.read_secret(namespace, secret_ref.name)
    owner_uid = ctx.body.get("metadata", {}).get("uid")

    if secret is None:
        logger.info(
            f"Client {ctx.namespace}/{ctx.name} referenced secret {secret_ref.name} "
            f"which does not exist: creating"
        )
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=secret_ref.name,
                namespace=namespace,
                owner_references=[owner_reference(ctx.body)],
            ),
            type="Opaque",
        )
        exists = False
    else:
        exists = True
        if not is_owned_by(secret, owner_uid):
            logger.info(
                f"Secret {namespace}/{secret_ref.name} exists but is not owned by "
                f"client {ctx.namespace}/{ctx.name}, skipping update"
            )
            return

    data = dict(secret.data or {})
    for key, value in (
        (SECRET_CLIENT_ID_KEY, client_id),
        (SECRET_CLIENT_SECRET_KEY, client_secret),
    ):
        # Auth0 does not return secrets of existing clients, keep what is stored
        if value is not None:
            data[key] = base64.b64encode(value.encode("utf-8")).decode("ascii")
        elif key not in data:
            data[key] = ""
    secret.data = data

    if exists:
        await ctx.gateway.replace_secret(namespace, secret_ref.name, secret)
    else:
        await ctx.gateway.create_secret(namespace, secret)
    logger.info(f"Client {ctx.namespace}/{ctx.name} updated secret {secret_ref.name}")


async def apply_client_status(
    ctx: ReconcileContext, snapshot: dict[str, Any]
) -> dict[str, Any]:
    last_conf = dict(snapshot)
    client_id = last_conf.pop("client_id", None)
    client_secret = last_conf.pop("client_secret", None)
    await apply_client_secret(ctx, client_id, client_secret)
    return {"lastConf": last_conf}


CLIENT_KIND = ResourceKind(
    name="client",
    kind="A0Client",
    plural=CLIENT_PLURAL,
    spec_model=ClientSpec,
    find=find_client,
    validate_create=validate_client_create,
    create=create_client,
    update=update_client,
    get=get_client,
    delete=delete_client,
    apply_status=apply_client_status,
)
