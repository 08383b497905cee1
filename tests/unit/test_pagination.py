"""Unit tests for the paginated listing fetcher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from auth0_operator.services.pagination import PaginatedCollectionFetcher, cache_key

DOMAIN = "example.eu.auth0.com"


def _page(kind: str, items: list, start: int, total: int) -> dict:
    return {kind: items, "start": start, "limit": 100, "length": len(items), "total": total}


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def fetcher(clock, sleep) -> PaginatedCollectionFetcher:
    return PaginatedCollectionFetcher(ttl=300, page_delay=0.05, clock=clock, sleep=sleep)


@pytest.fixture
def paged_api(api):
    """API returning 250 clients over three pages."""
    clients = [{"client_id": f"c{i}", "name": f"client-{i}"} for i in range(250)]

    async def get(path, params=None):
        start = params["page"] * params["per_page"]
        return _page("clients", clients[start : start + params["per_page"]], start, 250)

    api.get.side_effect = get
    return api


def test_cache_key():
    assert cache_key("clients", DOMAIN) == f"clients_all_{DOMAIN}"
    assert cache_key("clients", DOMAIN, {"fields": "name", "app_type": "spa"}) == (
        f"clients_all_{DOMAIN}?app_type=spa&fields=name"
    )


class TestGetAll:
    """Test fetching complete listings."""

    @pytest.mark.asyncio
    async def test_collects_every_page(self, fetcher, paged_api, sleep):
        items = await fetcher.get_all(paged_api, "clients")

        assert len(items) == 250
        assert items[0]["client_id"] == "c0"
        assert items[-1]["client_id"] == "c249"
        assert paged_api.get.await_count == 3
        # Pause between pages, not after the last one
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.05)

    @pytest.mark.asyncio
    async def test_sends_paging_and_extra_params(self, fetcher, paged_api):
        await fetcher.get_all(paged_api, "clients", params={"fields": "client_id,name"})

        path = paged_api.get.await_args_list[1].args[0]
        params = paged_api.get.await_args_list[1].kwargs["params"]
        assert path == "clients"
        assert params == {
            "fields": "client_id,name",
            "page": 1,
            "per_page": 100,
            "include_totals": "true",
        }

    @pytest.mark.asyncio
    async def test_custom_path(self, fetcher, api):
        api.get.return_value = _page("client_grants", [{"id": "cg1"}], 0, 1)

        items = await fetcher.get_all(api, "client_grants", "client-grants")

        assert items == [{"id": "cg1"}]
        assert api.get.await_args.args[0] == "client-grants"

    @pytest.mark.asyncio
    async def test_bare_list_response(self, fetcher, api):
        api.get.return_value = [{"id": "a"}, {"id": "b"}]

        items = await fetcher.get_all(api, "connections")

        assert items == [{"id": "a"}, {"id": "b"}]
        assert api.get.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_page_stops(self, fetcher, api):
        api.get.return_value = _page("connections", [], 0, 5)

        assert await fetcher.get_all(api, "connections") == []
        assert api.get.await_count == 1


class TestCaching:
    """Test the listing cache."""

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, fetcher, paged_api):
        first = await fetcher.get_all(paged_api, "clients")
        second = await fetcher.get_all(paged_api, "clients")

        assert first == second
        assert paged_api.get.await_count == 3

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, fetcher, paged_api, clock):
        await fetcher.get_all(paged_api, "clients")

        clock.now += 299
        await fetcher.get_all(paged_api, "clients")
        assert paged_api.get.await_count == 3

        clock.now += 1
        await fetcher.get_all(paged_api, "clients")
        assert paged_api.get.await_count == 6

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, fetcher, paged_api):
        await fetcher.get_all(paged_api, "clients")

        fetcher.invalidate("clients", DOMAIN)
        await fetcher.get_all(paged_api, "clients")

        assert paged_api.get.await_count == 6

    @pytest.mark.asyncio
    async def test_params_separate_projections(self, fetcher, paged_api):
        await fetcher.get_all(paged_api, "clients", params={"fields": "client_id"})
        await fetcher.get_all(paged_api, "clients", params={"fields": "client_id,name"})
        await fetcher.get_all(paged_api, "clients", params={"fields": "client_id"})

        assert paged_api.get.await_count == 6

    @pytest.mark.asyncio
    async def test_invalidate_drops_every_projection(self, fetcher, paged_api):
        await fetcher.get_all(paged_api, "clients")
        await fetcher.get_all(paged_api, "clients", params={"fields": "client_id"})

        fetcher.invalidate("clients", DOMAIN)
        await fetcher.get_all(paged_api, "clients")
        await fetcher.get_all(paged_api, "clients", params={"fields": "client_id"})

        assert paged_api.get.await_count == 12

    @pytest.mark.asyncio
    async def test_salt_separates_tenants(self, fetcher, paged_api):
        await fetcher.get_all(paged_api, "clients", salt="tenant-a")
        await fetcher.get_all(paged_api, "clients", salt="tenant-b")

        assert paged_api.get.await_count == 6

    @pytest.mark.asyncio
    async def test_concurrent_misses_fetch_once(self, fetcher, api):
        async def get(path, params=None):
            await asyncio.sleep(0.01)
            return _page("connections", [{"id": "con1"}], 0, 1)

        api.get.side_effect = get

        results = await asyncio.gather(
            *(fetcher.get_all(api, "connections") for _ in range(5))
        )

        assert all(result == [{"id": "con1"}] for result in results)
        assert api.get.await_count == 1
