"""
A0ResourceServer handlers - manage Auth0 APIs.
"""

from typing import Any

import kopf

from auth0_operator.constants import API_GROUP, API_VERSION, RESOURCE_SERVER_PLURAL
from auth0_operator.handlers import common
from auth0_operator.observability.tracing import traced_handler
from auth0_operator.services.kinds import RESOURCE_SERVER_KIND
from auth0_operator.settings import settings


@kopf.on.create(
    RESOURCE_SERVER_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.resume(
    RESOURCE_SERVER_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.update(
    RESOURCE_SERVER_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("reconcile_resource_server", RESOURCE_SERVER_PLURAL)
async def reconcile_resource_server(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.reconcile(RESOURCE_SERVER_KIND, body, memo)


@kopf.timer(
    RESOURCE_SERVER_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=settings.reconcile_interval_seconds,
    idle=settings.reconcile_interval_seconds,
    when=common.in_partition,
)
async def resync_resource_server(
    body: kopf.Body, status: kopf.Status, memo: kopf.Memo, **_: Any
) -> None:
    await common.resync(RESOURCE_SERVER_KIND, body, status, memo)


@kopf.on.delete(
    RESOURCE_SERVER_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("delete_resource_server", RESOURCE_SERVER_PLURAL)
async def delete_resource_server(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.delete(RESOURCE_SERVER_KIND, body, memo)
