"""
Kubernetes utilities for the Auth0 operator.

The synchronous ``kubernetes`` client is wrapped in ``asyncio.to_thread``
so handlers never block the event loop.

Key functionality:
- Kubernetes client configuration
- Custom resource reads, listings, replacement and status patches
- Secret reads and writes for client credentials
- events.k8s.io/v1 event emission
- Partition annotation filtering
"""

import asyncio
import logging
import socket
from datetime import UTC, datetime
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from auth0_operator.constants import (
    API_GROUP,
    API_VERSION,
    EVENT_NOTE_MAX_LENGTH,
    PARTITION_ANNOTATION,
    REPORTING_CONTROLLER,
)
from auth0_operator.errors import KubernetesAPIError

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Tries the in-cluster configuration first and falls back to the local
    kubeconfig for development.
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def matches_partition(annotations: dict[str, str] | None, partition: str | None) -> bool:
    """
    Whether a resource belongs to this operator's partition.

    With a partition configured only resources annotated with the same value
    match. Without one only resources lacking the annotation match.
    """
    value = (annotations or {}).get(PARTITION_ANNOTATION)
    if partition:
        return value == partition
    return value is None


def owner_reference(owner: dict[str, Any]) -> dict[str, Any]:
    """Controller owner reference pointing at a custom resource body."""
    metadata = owner.get("metadata", {})
    return {
        "apiVersion": owner.get("apiVersion", f"{API_GROUP}/{API_VERSION}"),
        "kind": owner.get("kind"),
        "name": metadata.get("name"),
        "uid": metadata.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def is_owned_by(obj: Any, owner_uid: str | None) -> bool:
    """Whether a kubernetes client model object lists ``owner_uid`` as an owner."""
    refs = getattr(obj.metadata, "owner_references", None) or []
    return owner_uid is not None and any(ref.uid == owner_uid for ref in refs)


def _kubernetes_error(action: str, e: ApiException) -> KubernetesAPIError:
    logger.error(f"Failed to {action}: {e.status} {e.reason}")
    return KubernetesAPIError(
        f"Failed to {action}", reason=e.reason, status=e.status
    )


class KubernetesGateway:
    """
    Async facade over the Kubernetes API calls the operator needs.

    All calls run in a worker thread. A 404 on reads is returned as ``None``,
    every other API failure raises KubernetesAPIError.
    """

    def __init__(self, api_client: client.ApiClient | None = None):
        self._api_client = api_client

    @property
    def api_client(self) -> client.ApiClient:
        if self._api_client is None:
            self._api_client = client.ApiClient()
        return self._api_client

    @property
    def custom_api(self) -> client.CustomObjectsApi:
        return client.CustomObjectsApi(self.api_client)

    @property
    def core_api(self) -> client.CoreV1Api:
        return client.CoreV1Api(self.api_client)

    @property
    def events_api(self) -> client.EventsV1Api:
        return client.EventsV1Api(self.api_client)

    async def get_custom_object(
        self, plural: str, namespace: str, name: str
    ) -> dict[str, Any] | None:
        try:
            return await asyncio.to_thread(
                self.custom_api.get_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _kubernetes_error(f"get {plural} {namespace}/{name}", e) from e

    async def list_custom_objects(
        self,
        plural: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List custom objects in one namespace, or cluster-wide when ``namespace`` is None."""
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector

        try:
            if namespace:
                result = await asyncio.to_thread(
                    self.custom_api.list_namespaced_custom_object,
                    group=API_GROUP,
                    version=API_VERSION,
                    namespace=namespace,
                    plural=plural,
                    **kwargs,
                )
            else:
                result = await asyncio.to_thread(
                    self.custom_api.list_cluster_custom_object,
                    group=API_GROUP,
                    version=API_VERSION,
                    plural=plural,
                    **kwargs,
                )
        except ApiException as e:
            raise _kubernetes_error(f"list {plural}", e) from e

        return result.get("items", [])

    async def replace_custom_object(
        self, plural: str, namespace: str, name: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        """Replace a custom object. ``body`` must carry the observed resourceVersion."""
        try:
            return await asyncio.to_thread(
                self.custom_api.replace_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=plural,
                name=name,
                body=body,
            )
        except ApiException as e:
            raise _kubernetes_error(f"replace {plural} {namespace}/{name}", e) from e

    async def patch_status(
        self, plural: str, namespace: str, name: str, status: dict[str, Any]
    ) -> None:
        """Merge-patch the status subresource."""
        try:
            await asyncio.to_thread(
                self.custom_api.patch_namespaced_custom_object_status,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=plural,
                name=name,
                body={"status": status},
            )
        except ApiException as e:
            raise _kubernetes_error(
                f"patch status of {plural} {namespace}/{name}", e
            ) from e

    async def read_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        try:
            return await asyncio.to_thread(
                self.core_api.read_namespaced_secret, name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _kubernetes_error(f"read secret {namespace}/{name}", e) from e

    async def create_secret(self, namespace: str, body: client.V1Secret) -> None:
        try:
            await asyncio.to_thread(
                self.core_api.create_namespaced_secret, namespace=namespace, body=body
            )
        except ApiException as e:
            raise _kubernetes_error(f"create secret in {namespace}", e) from e

    async def replace_secret(
        self, namespace: str, name: str, body: client.V1Secret
    ) -> None:
        try:
            await asyncio.to_thread(
                self.core_api.replace_namespaced_secret,
                name=name,
                namespace=namespace,
                body=body,
            )
        except ApiException as e:
            raise _kubernetes_error(f"replace secret {namespace}/{name}", e) from e

    async def create_event(
        self,
        regarding: dict[str, Any],
        action: str,
        reason: str,
        event_type: str,
        note: str,
    ) -> None:
        """Record an events.k8s.io/v1 Event about a custom resource."""
        metadata = regarding.get("metadata", {})
        namespace = metadata.get("namespace") or "default"
        body = {
            "apiVersion": "events.k8s.io/v1",
            "kind": "Event",
            "metadata": {
                "generateName": f"{metadata.get('name', 'auth0')}.",
                "namespace": namespace,
            },
            "eventTime": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "reportingController": REPORTING_CONTROLLER,
            "reportingInstance": socket.gethostname(),
            "action": action,
            "reason": reason,
            "type": event_type,
            "note": note[:EVENT_NOTE_MAX_LENGTH],
            "regarding": {
                "apiVersion": regarding.get("apiVersion"),
                "kind": regarding.get("kind"),
                "name": metadata.get("name"),
                "namespace": namespace,
                "uid": metadata.get("uid"),
                "resourceVersion": metadata.get("resourceVersion"),
            },
        }

        try:
            await asyncio.to_thread(
                self.events_api.create_namespaced_event, namespace=namespace, body=body
            )
        except ApiException as e:
            raise _kubernetes_error(f"create event in {namespace}", e) from e
