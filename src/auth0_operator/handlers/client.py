"""
A0Client handlers - manage Auth0 applications.

Besides the reconcile itself, every client change feeds the label
aggregator so connections pick up (or drop) clients labeled with
``auth0.kubernetes.com/connection``.
"""

import logging
from typing import Any

import kopf

from auth0_operator.constants import API_GROUP, API_VERSION, CLIENT_PLURAL
from auth0_operator.handlers import common
from auth0_operator.observability.tracing import traced_handler
from auth0_operator.services.kinds import CLIENT_KIND
from auth0_operator.services.label_aggregator import LabelAggregator
from auth0_operator.settings import settings

logger = logging.getLogger(__name__)


def _aggregator(memo: kopf.Memo) -> LabelAggregator:
    return memo.label_aggregator


@kopf.on.create(
    CLIENT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.resume(
    CLIENT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@kopf.on.update(
    CLIENT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("reconcile_client", CLIENT_PLURAL)
async def reconcile_client(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    """Reconcile the client, then refresh the connections it is labeled for."""
    await common.reconcile(CLIENT_KIND, body, memo)

    # Labeled clients are listed from the API, so a status.id written above is seen
    await _aggregator(memo).process_client(common.to_dict(body))


@kopf.timer(
    CLIENT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=settings.reconcile_interval_seconds,
    idle=settings.reconcile_interval_seconds,
    when=common.in_partition,
)
async def resync_client(
    body: kopf.Body, status: kopf.Status, memo: kopf.Memo, **_: Any
) -> None:
    await common.resync(CLIENT_KIND, body, status, memo)


@kopf.on.delete(
    CLIENT_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    backoff=1.5,
    when=common.in_partition,
)
@traced_handler("delete_client", CLIENT_PLURAL)
async def delete_client(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    await common.delete(CLIENT_KIND, body, memo)
    await _aggregator(memo).process_client_deletion(common.to_dict(body))
