"""
Resolution of references between custom resources.

References name another custom resource (``namespace``/``name``) or carry
the remote identifier directly. A referenced resource that does not exist
yet, or has not been reconciled yet, raises RetryError so the referrer is
reconciled again later.
"""

import logging

from auth0_operator.constants import CLIENT_PLURAL, RESOURCE_SERVER_PLURAL
from auth0_operator.errors import RetryError, ValidationError
from auth0_operator.models import ClientRef, ResourceServerRef
from auth0_operator.services.kinds.base import ReconcileContext

logger = logging.getLogger(__name__)


async def resolve_client_id(ctx: ReconcileContext, ref: ClientRef) -> str:
    """Resolve a client reference to the remote client id."""
    if ref.id:
        return ref.id
    if not ref.name:
        raise ValidationError("ClientRef requires either an id or a name.")

    namespace = ref.namespace or ctx.namespace
    client = await ctx.gateway.get_custom_object(CLIENT_PLURAL, namespace, ref.name)
    if client is None:
        raise RetryError(f"Could not resolve ClientRef {namespace}/{ref.name}.")

    client_id = (client.get("status") or {}).get("id")
    if not client_id:
        raise RetryError(
            f"Referenced Client {namespace}/{ref.name} has not been reconciled."
        )

    logger.debug(f"Resolved ClientRef {namespace}/{ref.name} to {client_id}")
    return client_id


async def resolve_resource_server_identifier(
    ctx: ReconcileContext, ref: ResourceServerRef
) -> str:
    """Resolve a resource server reference to its API identifier (audience)."""
    if ref.identifier:
        return ref.identifier

    if ref.id:
        resource_server = await ctx.api.get_or_none(f"resource-servers/{ref.id}")
        if not resource_server or not resource_server.get("identifier"):
            raise RetryError(f"Could not resolve ResourceServer with id {ref.id}.")
        return resource_server["identifier"]

    if not ref.name:
        raise ValidationError(
            "ResourceServerRef requires an identifier, an id or a name."
        )

    namespace = ref.namespace or ctx.namespace
    resource_server = await ctx.gateway.get_custom_object(
        RESOURCE_SERVER_PLURAL, namespace, ref.name
    )
    if resource_server is None:
        raise RetryError(f"Could not resolve ResourceServerRef {namespace}/{ref.name}.")

    identifier = (resource_server.get("status") or {}).get("identifier")
    if not identifier:
        raise RetryError(
            f"Referenced ResourceServer {namespace}/{ref.name} has not been reconciled."
        )
    return identifier
