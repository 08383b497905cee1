"""
A0ClientGrant handlers - grant clients access to APIs.
"""

from typing import Any

import kopf

from auth0_operator.constants import API_GROUP, API_VERSION, CLIENT_GRANT_PLURAL
from auth0_operator.handlers import common
from auth0_operator.observability.tracing import traced_handler
from auth0_operator.services.kinds import CLIENT_GRANT_KIND
from auth0_operator.settings import settings


@kopf.on.create(
    CLIENT_GRANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.resume(
    CLIENT_GRANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.update(
    CLIENT_GRANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("reconcile_client_grant", CLIENT_GRANT_PLURAL)
async def reconcile_client_grant(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.reconcile(CLIENT_GRANT_KIND, body, memo)


@kopf.timer(
    CLIENT_GRANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=settings.reconcile_interval_seconds,
    idle=settings.reconcile_interval_seconds,
    when=common.in_partition,
)
async def resync_client_grant(
    body: kopf.Body, status: kopf.Status, memo: kopf.Memo, **_: Any
) -> None:
    await common.resync(CLIENT_GRANT_KIND, body, status, memo)


@kopf.on.delete(
    CLIENT_GRANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("delete_client_grant", CLIENT_GRANT_PLURAL)
async def delete_client_grant(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.delete(CLIENT_GRANT_KIND, body, memo)
