"""Unit tests for the A0Connection and A0ResourceServer adapters."""

import pytest

from auth0_operator.errors import RetryError
from auth0_operator.services.kinds.connection import (
    find_connection,
    resolve_enabled_clients,
    update_connection,
)
from auth0_operator.services.kinds.resource_server import (
    apply_resource_server_status,
    find_resource_server,
    update_resource_server,
)

TENANT_REF = {"name": "prod"}


class TestConnection:
    """Test connection lookups and requests."""

    @pytest.mark.asyncio
    async def test_enabled_clients_resolved_to_ids(self, make_context, gateway):
        gateway.get_custom_object.return_value = {"status": {"id": "c3"}}
        ctx = make_context({"tenantRef": TENANT_REF})
        conf = {
            "name": "db",
            "enabled_clients": ["c1", {"id": "c2"}, {"name": "web", "namespace": "apps"}],
        }

        request = await resolve_enabled_clients(ctx, conf)

        assert request == {"name": "db", "enabled_clients": ["c1", "c2", "c3"]}
        gateway.get_custom_object.assert_awaited_once_with("a0clients", "apps", "web")
        assert conf["enabled_clients"][0] == "c1"

    @pytest.mark.asyncio
    async def test_unreconciled_client_is_retried(self, make_context, gateway):
        gateway.get_custom_object.return_value = {"status": {}}
        ctx = make_context({"tenantRef": TENANT_REF})

        with pytest.raises(RetryError):
            await resolve_enabled_clients(ctx, {"enabled_clients": [{"name": "web"}]})

    @pytest.mark.asyncio
    async def test_find_by_name(self, make_context, fetcher, api):
        fetcher.get_all.return_value = [{"id": "con_1", "name": "db"}]
        ctx = make_context({"tenantRef": TENANT_REF, "conf": {"name": "db"}})

        assert await find_connection(ctx) == "con_1"
        fetcher.get_all.assert_awaited_once_with(
            api, "connections", params={"fields": "id,name"}
        )

    @pytest.mark.asyncio
    async def test_update_omits_immutable_fields(self, make_context, api):
        ctx = make_context(
            {
                "tenantRef": TENANT_REF,
                "conf": {
                    "name": "db",
                    "strategy": "auth0",
                    "options": {"brute_force_protection": True},
                    "enabled_clients": ["c1"],
                },
            }
        )

        await update_connection(ctx, "con_1")

        api.patch.assert_awaited_once_with(
            "connections/con_1",
            json={"options": {"brute_force_protection": True}, "enabled_clients": ["c1"]},
        )


class TestResourceServer:
    """Test resource server lookups and status."""

    @pytest.mark.asyncio
    async def test_find_by_identifier(self, make_context, fetcher, api):
        fetcher.get_all.return_value = [
            {"id": "rs1", "identifier": "https://other.test"},
            {"id": "rs2", "identifier": "https://api.acme.test"},
        ]
        ctx = make_context(
            {"tenantRef": TENANT_REF, "conf": {"identifier": "https://api.acme.test"}}
        )

        assert await find_resource_server(ctx) == "rs2"
        fetcher.get_all.assert_awaited_once_with(
            api, "resource_servers", "resource-servers"
        )

    @pytest.mark.asyncio
    async def test_update_omits_identifier(self, make_context, api):
        ctx = make_context(
            {
                "tenantRef": TENANT_REF,
                "conf": {"identifier": "https://api.acme.test", "name": "API"},
            }
        )

        await update_resource_server(ctx, "rs2")

        api.patch.assert_awaited_once_with("resource-servers/rs2", json={"name": "API"})

    @pytest.mark.asyncio
    async def test_status_carries_identifier(self, make_context):
        ctx = make_context({"tenantRef": TENANT_REF})
        snapshot = {"id": "rs2", "identifier": "https://api.acme.test"}

        fields = await apply_resource_server_status(ctx, snapshot)

        assert fields == {"lastConf": snapshot, "identifier": "https://api.acme.test"}
