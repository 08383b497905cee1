"""Shared pytest fixtures for the operator unit tests."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from auth0_operator.models import TenantEntitySpec
from auth0_operator.services.kinds.base import ReconcileContext
from auth0_operator.utils.kubernetes import KubernetesGateway
from auth0_operator.utils.management_api import ManagementApiClient

DOMAIN = "example.eu.auth0.com"


@pytest.fixture
def gateway() -> AsyncMock:
    """Kubernetes gateway with every call mocked out."""
    mock = AsyncMock(spec=KubernetesGateway)
    mock.get_custom_object.return_value = None
    mock.list_custom_objects.return_value = []
    mock.read_secret.return_value = None
    return mock


@pytest.fixture
def api() -> AsyncMock:
    """Management API client mock for kind-level tests."""
    mock = AsyncMock(spec=ManagementApiClient)
    mock.domain = DOMAIN
    return mock


@pytest.fixture
def fetcher() -> MagicMock:
    """Listing fetcher mock, ``get_all`` returns an empty listing by default."""
    mock = MagicMock()
    mock.get_all = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def make_context(api, gateway, fetcher) -> Callable[..., ReconcileContext]:
    """Factory building a ReconcileContext around the mocked clients."""

    def _make(spec: dict, status: dict | None = None, spec_model=TenantEntitySpec):
        body = {
            "apiVersion": "kubernetes.auth0.com/v1",
            "kind": "A0Test",
            "metadata": {"name": "test", "namespace": "default", "uid": "uid-1"},
            "spec": spec,
            "status": status or {},
        }
        return ReconcileContext(
            name="test",
            namespace="default",
            body=body,
            spec=spec_model.model_validate(spec),
            api=api,
            gateway=gateway,
            fetcher=fetcher,
            status=dict(status or {}),
        )

    return _make


@pytest.fixture
def mock_api_client() -> Callable[..., ManagementApiClient]:
    """
    Factory for a real ManagementApiClient talking to an httpx.MockTransport.

    The handler receives every httpx.Request, the token provider hands out
    ``token-1`` and, on a forced refresh, ``token-2``.
    """

    def _make(handler, rate_limiter=None):
        token_provider = AsyncMock(
            side_effect=lambda force: "token-2" if force else "token-1"
        )
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ManagementApiClient(
            DOMAIN,
            token_provider,
            rate_limiter=rate_limiter,
            http_client=http_client,
        )
        return client

    return _make
