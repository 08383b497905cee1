"""Unit tests for Kubernetes utility functions and the gateway."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException

from auth0_operator.errors import KubernetesAPIError
from auth0_operator.utils.kubernetes import (
    KubernetesGateway,
    is_owned_by,
    matches_partition,
    owner_reference,
)

BODY = {
    "apiVersion": "kubernetes.auth0.com/v1",
    "kind": "A0Client",
    "metadata": {
        "name": "web",
        "namespace": "apps",
        "uid": "uid-1",
        "resourceVersion": "42",
    },
}


class TestPartition:
    """Test partition matching."""

    def test_no_partition_matches_unannotated(self):
        assert matches_partition(None, None)
        assert matches_partition({}, None)

    def test_no_partition_skips_annotated(self):
        assert not matches_partition({"kubernetes.auth0.com/partition": "blue"}, None)

    def test_partition_matches_same_value(self):
        annotations = {"kubernetes.auth0.com/partition": "blue"}

        assert matches_partition(annotations, "blue")
        assert not matches_partition(annotations, "green")
        assert not matches_partition({}, "blue")


class TestOwnership:
    """Test owner references."""

    def test_owner_reference(self):
        ref = owner_reference(BODY)

        assert ref == {
            "apiVersion": "kubernetes.auth0.com/v1",
            "kind": "A0Client",
            "name": "web",
            "uid": "uid-1",
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def test_is_owned_by(self):
        secret = MagicMock()
        secret.metadata.owner_references = [MagicMock(uid="uid-1")]

        assert is_owned_by(secret, "uid-1")
        assert not is_owned_by(secret, "uid-2")
        assert not is_owned_by(secret, None)

    def test_no_owner_references(self):
        secret = MagicMock()
        secret.metadata.owner_references = None

        assert not is_owned_by(secret, "uid-1")


class TestKubernetesGateway:
    """Test the async gateway over the Kubernetes client."""

    @pytest.mark.asyncio
    @patch("auth0_operator.utils.kubernetes.client.CustomObjectsApi")
    async def test_get_missing_custom_object(self, mock_api_class):
        mock_api_class.return_value.get_namespaced_custom_object.side_effect = (
            ApiException(status=404, reason="Not Found")
        )

        gateway = KubernetesGateway(MagicMock())

        assert await gateway.get_custom_object("a0clients", "apps", "web") is None

    @pytest.mark.asyncio
    @patch("auth0_operator.utils.kubernetes.client.CustomObjectsApi")
    async def test_replace_conflict_carries_status(self, mock_api_class):
        mock_api_class.return_value.replace_namespaced_custom_object.side_effect = (
            ApiException(status=409, reason="Conflict")
        )

        gateway = KubernetesGateway(MagicMock())

        with pytest.raises(KubernetesAPIError) as exc_info:
            await gateway.replace_custom_object("a0connections", "auth", "db", {})
        assert exc_info.value.status == 409

    @pytest.mark.asyncio
    @patch("auth0_operator.utils.kubernetes.client.CustomObjectsApi")
    async def test_list_with_label_selector(self, mock_api_class):
        api = mock_api_class.return_value
        api.list_cluster_custom_object.return_value = {"items": [{"metadata": {}}]}

        gateway = KubernetesGateway(MagicMock())
        items = await gateway.list_custom_objects(
            "a0clients", label_selector="auth0.kubernetes.com/connection"
        )

        assert items == [{"metadata": {}}]
        kwargs = api.list_cluster_custom_object.call_args.kwargs
        assert kwargs["label_selector"] == "auth0.kubernetes.com/connection"
        assert kwargs["group"] == "kubernetes.auth0.com"

    @pytest.mark.asyncio
    @patch("auth0_operator.utils.kubernetes.client.CustomObjectsApi")
    async def test_patch_status(self, mock_api_class):
        api = mock_api_class.return_value

        gateway = KubernetesGateway(MagicMock())
        await gateway.patch_status("a0clients", "apps", "web", {"id": "abc"})

        kwargs = api.patch_namespaced_custom_object_status.call_args.kwargs
        assert kwargs["body"] == {"status": {"id": "abc"}}
        assert kwargs["name"] == "web"

    @pytest.mark.asyncio
    @patch("auth0_operator.utils.kubernetes.client.EventsV1Api")
    async def test_create_event(self, mock_api_class):
        api = mock_api_class.return_value

        gateway = KubernetesGateway(MagicMock())
        await gateway.create_event(BODY, "Reconcile", "ApiError", "Warning", "x" * 2000)

        kwargs = api.create_namespaced_event.call_args.kwargs
        event = kwargs["body"]
        assert kwargs["namespace"] == "apps"
        assert event["reportingController"] == "kubernetes.auth0.com/operator"
        assert event["action"] == "Reconcile"
        assert event["reason"] == "ApiError"
        assert event["type"] == "Warning"
        assert len(event["note"]) == 1024
        assert event["regarding"]["uid"] == "uid-1"
        assert event["regarding"]["kind"] == "A0Client"
        assert event["metadata"]["generateName"] == "web."
