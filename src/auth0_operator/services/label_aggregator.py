"""
Aggregation of labeled clients into connection ``enabled_clients``.

An A0Client labeled ``auth0.kubernetes.com/connection=<ns>.<name>`` is
enabled on that A0Connection. The aggregator lists the labeled clients of
a connection and merges them into ``spec.conf.enabled_clients``, leaving
entries declared by hand in place. The ids it merged are remembered in an
annotation so that removing a label also removes the client again.
"""

import json
import logging
from typing import Any

from auth0_operator.constants import (
    CLIENT_PLURAL,
    CONNECTION_LABEL_KEY,
    CONNECTION_PLURAL,
    LABEL_CONFLICT_RETRIES,
    LABEL_MANAGED_ANNOTATION,
)
from auth0_operator.errors import KubernetesAPIError
from auth0_operator.services.drift import values_equal
from auth0_operator.utils.kubernetes import KubernetesGateway, matches_partition

logger = logging.getLogger(__name__)


def sanitize_label_value(connection_ref: str) -> str:
    """Make a connection reference usable as a label value."""
    return connection_ref.replace("/", "_").replace(":", "_")


def unsanitize_label_value(value: str) -> str:
    """Turn the first underscore back into the namespace separator."""
    index = value.find("_")
    if 0 < index < len(value) - 1:
        return f"{value[:index]}/{value[index + 1:]}"
    return value


def _split_reference(value: str, separator: str, default_namespace: str) -> tuple[str, str]:
    parts = [part for part in value.split(separator) if part]
    if len(parts) == 1:
        return default_namespace, parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(
        f"Invalid connection reference format: {value}. "
        f"Expected 'namespace.name' or 'name'."
    )


def parse_connection_reference(value: str, default_namespace: str) -> tuple[str, str]:
    """
    Parse a connection label value into ``(namespace, name)``.

    Accepts ``namespace.name``, the sanitized ``namespace_name`` and a bare
    ``name`` in the client's namespace.
    """
    if "." in value:
        return _split_reference(value, ".", default_namespace)
    if "_" in value:
        return _split_reference(unsanitize_label_value(value), "/", default_namespace)
    return default_namespace, value


def _entry_id(entry: Any) -> str | None:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        return entry.get("id")
    return None


def merge_enabled_clients(
    declared: list[Any],
    labeled: list[dict[str, Any]],
    previously_labeled: set[str] | None = None,
) -> list[Any]:
    """
    Merge labeled client references into the declared enabled clients.

    Entries are keyed by client id and labeled entries replace declared ones
    with the same id. Ids merged earlier whose label is gone are dropped.
    Declared entries without an id follow the id-keyed ones.
    """
    previously_labeled = previously_labeled or set()
    labeled_by_id = {ref["id"]: ref for ref in labeled}

    merged: dict[str, Any] = {}
    unkeyed = []
    for entry in declared:
        entry_id = _entry_id(entry)
        if not entry_id:
            unkeyed.append(entry)
            continue
        if entry_id in previously_labeled and entry_id not in labeled_by_id:
            continue
        merged[entry_id] = labeled_by_id.get(entry_id, entry)

    for client_id, ref in labeled_by_id.items():
        merged.setdefault(client_id, ref)

    return list(merged.values()) + unkeyed


def _managed_ids(connection: dict[str, Any]) -> set[str]:
    annotations = (connection.get("metadata") or {}).get("annotations") or {}
    raw = annotations.get(LABEL_MANAGED_ANNOTATION)
    if not raw:
        return set()
    try:
        return set(json.loads(raw))
    except (ValueError, TypeError):
        logger.warning(f"Ignoring malformed {LABEL_MANAGED_ANNOTATION} annotation: {raw}")
        return set()


class LabelAggregator:
    """Keeps connection ``enabled_clients`` in sync with client labels."""

    def __init__(
        self,
        gateway: KubernetesGateway,
        namespaces: list[str] | None = None,
        partition: str | None = None,
    ):
        self.gateway = gateway
        self.namespaces = namespaces
        self.partition = partition

    async def _list_labeled_clients(self) -> list[dict[str, Any]]:
        namespaces = self.namespaces or [None]
        clients = []
        for namespace in namespaces:
            clients.extend(
                await self.gateway.list_custom_objects(
                    CLIENT_PLURAL, namespace=namespace, label_selector=CONNECTION_LABEL_KEY
                )
            )
        return clients

    async def labeled_clients(self, namespace: str, name: str) -> list[dict[str, Any]]:
        """References of the reconciled, live clients labeled for a connection."""
        refs = []
        for client in await self._list_labeled_clients():
            metadata = client.get("metadata") or {}
            if not matches_partition(metadata.get("annotations"), self.partition):
                continue
            label = (metadata.get("labels") or {}).get(CONNECTION_LABEL_KEY, "")
            try:
                target = parse_connection_reference(label, metadata.get("namespace"))
            except ValueError as e:
                logger.warning(f"Ignoring client {metadata.get('name')}: {e}")
                continue
            if target != (namespace, name):
                continue

            client_id = (client.get("status") or {}).get("id")
            if not client_id or metadata.get("deletionTimestamp"):
                continue
            refs.append(
                {
                    "id": client_id,
                    "name": metadata.get("name"),
                    "namespace": metadata.get("namespace"),
                }
            )
        return refs

    async def recompute_connection(self, namespace: str, name: str) -> bool:
        """
        Merge the labeled clients into one connection.

        Returns:
            True if the connection was written
        """
        labeled = await self.labeled_clients(namespace, name)
        labeled_ids = sorted(ref["id"] for ref in labeled)

        for attempt in range(1, LABEL_CONFLICT_RETRIES + 1):
            connection = await self.gateway.get_custom_object(
                CONNECTION_PLURAL, namespace, name
            )
            if connection is None:
                logger.warning(f"Connection {namespace}/{name} no longer exists")
                return False

            spec = connection.setdefault("spec", {})
            conf = spec.get("conf") or {}
            current = conf.get("enabled_clients") or []
            previously_labeled = _managed_ids(connection)
            merged = merge_enabled_clients(current, labeled, previously_labeled)

            up_to_date = values_equal(current, merged) and all(
                ref in current for ref in labeled
            )
            if up_to_date and previously_labeled == set(labeled_ids):
                logger.debug(f"Connection {namespace}/{name} enabled clients are up to date")
                return False

            spec["conf"] = {**conf, "enabled_clients": merged}
            annotations = connection["metadata"].setdefault("annotations", {}) or {}
            annotations[LABEL_MANAGED_ANNOTATION] = json.dumps(labeled_ids)
            connection["metadata"]["annotations"] = annotations

            try:
                await self.gateway.replace_custom_object(
                    CONNECTION_PLURAL, namespace, name, connection
                )
            except KubernetesAPIError as e:
                if e.status == 409 and attempt < LABEL_CONFLICT_RETRIES:
                    logger.info(
                        f"Conflict updating connection {namespace}/{name}, "
                        f"retrying ({attempt}/{LABEL_CONFLICT_RETRIES})"
                    )
                    continue
                raise

            logger.info(
                f"Applied {len(labeled)} label-managed clients to connection {namespace}/{name}"
            )
            return True

        return False

    async def recompute_all_connections(self) -> None:
        """Recompute every watched connection, which also drops removed labels."""
        namespaces = self.namespaces or [None]
        for namespace in namespaces:
            for connection in await self.gateway.list_custom_objects(
                CONNECTION_PLURAL, namespace=namespace
            ):
                metadata = connection.get("metadata") or {}
                if not matches_partition(metadata.get("annotations"), self.partition):
                    continue
                await self.recompute_connection(metadata["namespace"], metadata["name"])

    async def process_client(self, body: dict[str, Any]) -> None:
        """Handle a change of an A0Client."""
        metadata = body.get("metadata") or {}
        label = (metadata.get("labels") or {}).get(CONNECTION_LABEL_KEY)

        if label:
            namespace, name = parse_connection_reference(label, metadata.get("namespace"))
            connection = await self.gateway.get_custom_object(
                CONNECTION_PLURAL, namespace, name
            )
            if connection is None:
                logger.warning(
                    f"Could not find connection {namespace}/{name} labeled on client "
                    f"{metadata.get('namespace')}/{metadata.get('name')}"
                )
            else:
                await self.recompute_connection(namespace, name)

        await self.recompute_all_connections()

    async def process_client_deletion(self, body: dict[str, Any]) -> None:
        """Handle the deletion of an A0Client."""
        await self.recompute_all_connections()
