"""
Tests for the cache-then-remote repositories.
"""

import asyncio

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_promo.app.adapters.remote_client import RemoteDataClient
from service_promo.app.caching.entity_cache import EntityCacheStore
from service_promo.app.domain.models import (
    CreatePromoStorePayload,
    CreatePromoTenorPayload,
    CreateStorePayload,
    StoreType,
    UpdatePromoPayload,
    UpdateStorePayload,
)
from service_promo.app.repositories import (
    PromoRepository,
    PromoStoreRepository,
    PromoTenorRepository,
    StoreRepository,
)
from shared.errors import ConflictError, DatabaseError, NotFoundError, ValidationError
from shared.metrics import MetricsCollector


class Repositories:
    """All four repositories wired against one fake remote service."""

    def __init__(self, fake_remote):
        self.remote = fake_remote
        self.metrics = MetricsCollector("promo-test")
        self.client = RemoteDataClient("http://remote.test", "service-key", transport=fake_remote.transport)
        self.cache = EntityCacheStore()
        self.promo_stores = PromoStoreRepository(self.client, self.cache, self.metrics)
        self.stores = StoreRepository(self.client, self.cache, self.metrics)
        self.promos = PromoRepository(self.client, self.cache, self.metrics, promo_stores=self.promo_stores)
        self.tenors = PromoTenorRepository(self.client, self.cache, self.metrics, promo_stores=self.promo_stores)

    def sample(self, metric, entity):
        return self.metrics.registry.get_sample_value(metric, {"entity": entity}) or 0.0


@pytest.fixture
def repos(fake_remote):
    return Repositories(fake_remote)


class TestReadThrough:

    @pytest.mark.asyncio
    async def test_cold_fetch_all_then_route_lookup_from_index(self, repos):
        stores = await repos.stores.fetch_all()

        assert [item.route for item in stores] == ["jkt-01", "bdg-02"]
        assert len(repos.remote.calls("GET", "store")) == 1
        assert await repos.cache.stores.lookup("route", "jkt-01") is not None

        store = await repos.stores.fetch_by_route("jkt-01")

        assert store.id == "s-1"
        assert len(repos.remote.calls("GET", "store")) == 1
        assert repos.sample("cache_misses_total", "store") == 1.0
        assert repos.sample("cache_hits_total", "store") == 1.0

    @pytest.mark.asyncio
    async def test_warm_fetch_all_skips_remote(self, repos):
        await repos.stores.fetch_all()
        await repos.stores.fetch_all()

        assert len(repos.remote.calls("GET", "store")) == 1

    @pytest.mark.asyncio
    async def test_keyed_miss_does_not_fill_bulk_cache(self, repos):
        store = await repos.stores.fetch_by_route("bdg-02")

        assert store.id == "s-2"
        request = repos.remote.calls("GET", "store")[0]
        assert request.url.params["route"] == "eq.bdg-02"
        assert await repos.cache.stores.get_all() == []

    @pytest.mark.asyncio
    async def test_empty_table_is_not_found(self, repos):
        repos.remote.tables["store"] = []

        with pytest.raises(NotFoundError):
            await repos.stores.fetch_all()

    @pytest.mark.asyncio
    async def test_unknown_route_is_not_found(self, repos):
        with pytest.raises(NotFoundError):
            await repos.stores.fetch_by_route("nope")

    @pytest.mark.asyncio
    async def test_remote_failure_is_database_error(self, repos):
        repos.remote.script(500, {"message": "boom"})

        with pytest.raises(DatabaseError) as exc_info:
            await repos.stores.fetch_all()
        assert exc_info.value.details["remote_code"] == "REMOTE_HTTP_ERROR"
        assert len(repos.remote.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_table_is_not_found(self, repos):
        repos.remote.script(404, "")

        with pytest.raises(NotFoundError):
            await repos.promos.fetch_all()

    @pytest.mark.asyncio
    async def test_concurrent_cold_reads_are_not_collapsed(self, repos):
        # no single-flight: every concurrent miss goes to the remote service
        await asyncio.gather(*(repos.stores.fetch_all() for _ in range(3)))

        assert len(repos.remote.calls("GET", "store")) == 3


class TestInvalidateOnWrite:

    @pytest.mark.asyncio
    async def test_create_invalidates_and_next_read_refetches(self, repos):
        before = await repos.stores.fetch_all()

        created = await repos.stores.create(CreateStorePayload(
            name="Surabaya", company="ACME", address="Jl. Tunjungan 3", route="sby-03", store_type=StoreType.KA,
        ))

        assert created.route == "sby-03"
        assert await repos.cache.stores.get_all() == []

        after = await repos.stores.fetch_all()
        assert len(after) == len(before) + 1
        assert len(repos.remote.calls("GET", "store")) == 2

    @pytest.mark.asyncio
    async def test_update_by_route_resolves_id_from_index(self, repos):
        await repos.stores.fetch_all()

        updated = await repos.stores.update_by_route("jkt-01", UpdateStorePayload(name="Jakarta Prime"))

        assert updated.name == "Jakarta Prime"
        patch = repos.remote.calls("PATCH", "store")[0]
        assert patch.url.params["id"] == "eq.s-1"
        assert await repos.cache.stores.get_all() == []
        assert (await repos.stores.fetch_by_route("jkt-01")).name == "Jakarta Prime"

    @pytest.mark.asyncio
    async def test_delete_by_route(self, repos):
        await repos.stores.delete_by_route("bdg-02")

        assert [row["id"] for row in repos.remote.tables["store"]] == ["s-1"]
        with pytest.raises(NotFoundError):
            await repos.stores.fetch_by_route("bdg-02")

    @pytest.mark.asyncio
    async def test_store_write_clears_links_and_view(self, repos):
        await repos.promo_stores.fetch_all()
        await repos.tenors.fetch_by_store_id("s-1")

        await repos.stores.update_by_route("jkt-01", UpdateStorePayload(address="Jl. Thamrin 9"))

        assert await repos.cache.promo_stores.get_all() == []
        assert await repos.cache.get_tenors_by_store("s-1") is None
        assert repos.sample("cache_invalidations_total", "promo_store") == 1.0

    @pytest.mark.asyncio
    async def test_promo_write_clears_dependents(self, repos):
        await asyncio.gather(repos.promos.fetch_all(), repos.tenors.fetch_all(), repos.promo_stores.fetch_all())
        await repos.stores.fetch_all()

        await repos.promos.update_by_id("p-1", UpdatePromoPayload(is_active=False))

        counts = await repos.cache.counts()
        assert counts["promo"] == 0
        assert counts["promo_tenor"] == 0
        assert counts["promo_store"] == 0
        assert counts["store"] == 2

    @pytest.mark.asyncio
    async def test_tenor_write_clears_only_tenors_and_view(self, repos):
        await asyncio.gather(repos.promos.fetch_all(), repos.tenors.fetch_all())

        await repos.tenors.insert(CreatePromoTenorPayload(promo_id="p-2", tenor=12, min_transaction=0))

        counts = await repos.cache.counts()
        assert counts["promo_tenor"] == 0
        assert counts["promo"] == 2

    @pytest.mark.asyncio
    async def test_link_write_clears_view(self, repos):
        assert [tenor.id for tenor in await repos.tenors.fetch_by_store_id("s-2")] == []

        link = await repos.promo_stores.insert(CreatePromoStorePayload(promo_id="p-1", store_id="s-2"))

        assert link.store_id == "s-2"
        assert await repos.cache.get_tenors_by_store("s-2") is None
        assert [tenor.id for tenor in await repos.tenors.fetch_by_store_id("s-2")] == ["t-1", "t-2"]

    @pytest.mark.asyncio
    async def test_create_without_echo_still_invalidates(self, repos):
        await repos.stores.fetch_all()
        await repos.promo_stores.fetch_all()
        repos.remote.script(201, "")

        with pytest.raises(DatabaseError) as exc_info:
            await repos.stores.create(CreateStorePayload(
                name="Surabaya", company="ACME", address="Jl. Tunjungan 3", route="sby-03", store_type=StoreType.KA,
            ))

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["remote_code"] == "REMOTE_NOT_FOUND"
        assert await repos.cache.stores.get_all() == []
        assert await repos.cache.promo_stores.get_all() == []

        await repos.stores.fetch_all()
        assert len(repos.remote.calls("GET", "store")) == 2

    @pytest.mark.asyncio
    async def test_update_without_changes_rejected(self, repos):
        with pytest.raises(ValidationError):
            await repos.promos.update_by_id("p-1", UpdatePromoPayload())
        assert repos.remote.requests == []

    @pytest.mark.asyncio
    async def test_update_missing_row_is_not_found(self, repos):
        with pytest.raises(NotFoundError):
            await repos.promos.update_by_id("p-404", UpdatePromoPayload(is_active=False))

    @pytest.mark.asyncio
    async def test_delete_missing_row_is_not_found(self, repos):
        with pytest.raises(NotFoundError):
            await repos.tenors.delete_by_id("t-404")

    @pytest.mark.asyncio
    async def test_conflict(self, repos):
        repos.remote.script(409, {"message": "duplicate key value violates unique constraint"})

        with pytest.raises(ConflictError):
            await repos.promo_stores.insert(CreatePromoStorePayload(promo_id="p-1", store_id="s-1"))


class TestLookups:

    @pytest.mark.asyncio
    async def test_promos_by_store(self, repos):
        promos = await repos.promos.fetch_by_store_id("s-2")

        assert [promo.id for promo in promos] == ["p-2"]
        assert await repos.promos.fetch_by_store_id("s-404") == []

    @pytest.mark.asyncio
    async def test_tenor_filters(self, repos):
        assert [t.id for t in await repos.tenors.filter(promo_id="p-2")] == ["t-4"]
        assert [t.id for t in await repos.tenors.filter(tenor=6)] == ["t-2", "t-4"]
        assert [t.id for t in await repos.tenors.filter(voucher="ZERO3")] == ["t-1"]
        assert await repos.tenors.filter(voucher="NONE") == []

    @pytest.mark.asyncio
    async def test_tenors_by_store_view(self, repos):
        # s-1: every available tenor of p-1, and only t-4 of p-2
        tenors = await repos.tenors.fetch_by_store_id("s-1")

        assert [tenor.id for tenor in tenors] == ["t-1", "t-2", "t-4"]
        assert await repos.cache.get_tenors_by_store("s-1") == tenors

        requests_before = len(repos.remote.requests)
        assert await repos.tenors.fetch_by_store_id("s-1") == tenors
        assert len(repos.remote.requests) == requests_before

    @pytest.mark.asyncio
    async def test_empty_tenor_ids_excludes_all(self, repos):
        assert await repos.tenors.fetch_by_store_id("s-2") == []

    @pytest.mark.asyncio
    async def test_promo_store_by_pair(self, repos):
        link = await repos.promo_stores.fetch_by_pair("p-2", "s-2")
        assert link.id == "ps-3"
        request = repos.remote.calls("GET", "promo_store")[0]
        assert request.url.params["promo_id"] == "eq.p-2"
        assert request.url.params["store_id"] == "eq.s-2"

        await repos.promo_stores.fetch_all()
        assert (await repos.promo_stores.fetch_by_pair("p-1", "s-1")).id == "ps-1"
        assert len(repos.remote.calls("GET", "promo_store")) == 2

    @pytest.mark.asyncio
    async def test_promo_store_filter(self, repos):
        links = await repos.promo_stores.filter(store_id="s-1")
        assert [link.id for link in links] == ["ps-1", "ps-2"]

    @pytest.mark.asyncio
    async def test_unlinked_store_ids_are_not_memoized(self, repos):
        await repos.promo_stores.fetch_all()

        for index in range(50):
            assert await repos.tenors.fetch_by_store_id(f"unknown-{index}") == []

        assert (await repos.cache.counts())["tenor_by_store"] == 0

        await repos.tenors.fetch_by_store_id("s-1")
        assert (await repos.cache.counts())["tenor_by_store"] == 1
