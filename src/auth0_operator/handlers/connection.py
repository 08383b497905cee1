"""
A0Connection handlers - manage Auth0 connections.
"""

from typing import Any

import kopf

from auth0_operator.constants import API_GROUP, API_VERSION, CONNECTION_PLURAL
from auth0_operator.handlers import common
from auth0_operator.observability.tracing import traced_handler
from auth0_operator.services.kinds import CONNECTION_KIND
from auth0_operator.settings import settings


@kopf.on.create(
    CONNECTION_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.resume(
    CONNECTION_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.update(
    CONNECTION_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("reconcile_connection", CONNECTION_PLURAL)
async def reconcile_connection(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.reconcile(CONNECTION_KIND, body, memo)


@kopf.timer(
    CONNECTION_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=settings.reconcile_interval_seconds,
    idle=settings.reconcile_interval_seconds,
    when=common.in_partition,
)
async def resync_connection(
    body: kopf.Body, status: kopf.Status, memo: kopf.Memo, **_: Any
) -> None:
    await common.resync(CONNECTION_KIND, body, status, memo)


@kopf.on.delete(
    CONNECTION_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("delete_connection", CONNECTION_PLURAL)
async def delete_connection(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.delete(CONNECTION_KIND, body, memo)
