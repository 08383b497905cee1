"""
Shared pieces of the kopf handlers.

Every kind registers the same set of handlers: create/resume/update and
the periodic resync reconcile, delete removes the Auth0 entity. The
handlers only unpack kopf's arguments and hand over to the generic
reconciler.
"""

import asyncio
import copy
import logging
import random
from typing import Any

import kopf

from auth0_operator.services.kinds import ResourceKind
from auth0_operator.services.reconciler import (
    ReconcileDependencies,
    delete_entity,
    reconcile_entity,
)
from auth0_operator.settings import settings
from auth0_operator.utils.kubernetes import matches_partition

logger = logging.getLogger(__name__)


def in_partition(meta: kopf.Meta, **_: Any) -> bool:
    """kopf ``when=`` filter selecting resources of this operator's partition."""
    return matches_partition(meta.get("annotations"), settings.partition)


def to_dict(body: kopf.Body) -> dict[str, Any]:
    """Detached, mutable copy of a kopf body."""
    return copy.deepcopy(dict(body))


def dependencies(memo: kopf.Memo) -> ReconcileDependencies:
    return memo.deps


async def jitter() -> None:
    """Spread reconciliations so a restart does not hit Auth0 all at once."""
    await asyncio.sleep(random.uniform(0, settings.reconcile_jitter_max_seconds))


async def reconcile(kind: ResourceKind, body: kopf.Body, memo: kopf.Memo) -> None:
    await jitter()
    await reconcile_entity(kind, to_dict(body), dependencies(memo))


async def resync(
    kind: ResourceKind, body: kopf.Body, status: kopf.Status, memo: kopf.Memo
) -> None:
    """Periodic reconcile, only once the resource has been linked to Auth0."""
    if not status.get("id"):
        return
    await reconcile_entity(kind, to_dict(body), dependencies(memo))


async def delete(kind: ResourceKind, body: kopf.Body, memo: kopf.Memo) -> None:
    await delete_entity(kind, to_dict(body), dependencies(memo))
