"""
A0Tenant handlers - keep Auth0 tenant settings in sync.
"""

from typing import Any

import kopf

from auth0_operator.constants import API_GROUP, API_VERSION, TENANT_PLURAL
from auth0_operator.handlers import common
from auth0_operator.observability.tracing import traced_handler
from auth0_operator.services.kinds import TENANT_KIND
from auth0_operator.settings import settings


@kopf.on.create(
    TENANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.resume(
    TENANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.update(
    TENANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("reconcile_tenant", TENANT_PLURAL)
async def reconcile_tenant(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.reconcile(TENANT_KIND, body, memo)


@kopf.timer(
    TENANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=settings.reconcile_interval_seconds,
    idle=settings.reconcile_interval_seconds,
    when=common.in_partition,
)
async def resync_tenant(
    body: kopf.Body, status: kopf.Status, memo: kopf.Memo, **_: Any
) -> None:
    await common.resync(TENANT_KIND, body, status, memo)


@kopf.on.delete(
    TENANT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("delete_tenant", TENANT_PLURAL)
async def delete_tenant(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.delete(TENANT_KIND, body, memo)
