"""
Unit Tests: Cache Manager

Tests:
    - TTL reuse and expiry (adapter call counts)
    - Optimistic write and delete, kept on substrate failure
    - Validation before any effect
    - Root sector protection
    - Invalidation, including fetches in flight
"""

import asyncio

import pytest

from ecclesia.cache import CacheManager, CacheState
from ecclesia.core.entities import (
    Asset,
    Collection,
    Discipline,
    Member,
    Sector,
    Transaction,
    WorkProject,
)
from ecclesia.core.errors import ErrorCode, StorageError, ValidationError
from ecclesia.storage import MemoryRecordStore, OperationType
from ecclesia.tests.fakes import run


def fetches(store: MemoryRecordStore) -> int:
    return store.stats.count(OperationType.FETCH_ALL)


class TestReadPath:
    """Read-through with TTL reuse."""

    def test_read_within_ttl_reuses_snapshot(self, store, cache, clock):
        run(store.upsert(Collection.MEMBERS, Member(id="m1", full_name="Ana")))

        first = run(cache.read(Collection.MEMBERS))
        clock.advance(299)
        second = run(cache.read(Collection.MEMBERS))

        assert fetches(store) == 1
        assert first == second
        assert cache.stats.hits == 1
        assert cache.stats.hit_rate == 0.5

    def test_read_after_ttl_fetches_exactly_once(self, store, cache, clock):
        run(cache.read(Collection.MEMBERS))
        clock.advance(301)

        run(cache.read(Collection.MEMBERS))
        run(cache.read(Collection.MEMBERS))

        assert fetches(store) == 2

    def test_force_refresh_bypasses_ttl(self, store, cache):
        run(cache.read(Collection.MEMBERS))
        run(cache.read(Collection.MEMBERS, force_refresh=True))

        assert fetches(store) == 2

    def test_collections_have_independent_timestamps(self, store, cache, clock):
        run(cache.read(Collection.MEMBERS))
        clock.advance(200)
        run(cache.read(Collection.ASSETS))
        clock.advance(150)

        assert cache.state(Collection.MEMBERS) is CacheState.STALE
        assert cache.state(Collection.ASSETS) is CacheState.FRESH
        assert cache.state(Collection.WORKS) is CacheState.EMPTY

    def test_empty_result_is_cached(self, store, cache):
        assert run(cache.read(Collection.WORKS)) == []
        assert run(cache.read(Collection.WORKS)) == []

        assert fetches(store) == 1

    def test_concurrent_readers_share_one_fetch(self, clock):
        store = MemoryRecordStore(simulated_latency_ms=20)
        cache = CacheManager(store, clock=clock)

        async def scenario():
            return await asyncio.gather(*(cache.read(Collection.SECTORS) for _ in range(5)))

        results = run(scenario())

        assert fetches(store) == 1
        assert all(r == results[0] for r in results)

    def test_failed_fetch_keeps_prior_state(self, store, cache, clock):
        run(store.upsert(Collection.MEMBERS, Member(id="m1", full_name="Ana")))
        run(cache.read(Collection.MEMBERS))
        clock.advance(301)
        store.set_available(False)

        with pytest.raises(StorageError):
            run(cache.read(Collection.MEMBERS))

        assert [m.id for m in cache.snapshot(Collection.MEMBERS)] == ["m1"]
        assert cache.state(Collection.MEMBERS) is CacheState.STALE
        assert cache.stats.fetch_failures == 1

    def test_returned_list_is_a_copy(self, cache):
        members = run(cache.read(Collection.MEMBERS))
        members.append(Member(id="intruder", full_name="X"))

        assert run(cache.read(Collection.MEMBERS)) == []


class TestWritePath:
    """Optimistic writes, no rollback."""

    def test_write_visible_before_substrate_confirms(self, clock):
        store = MemoryRecordStore(simulated_latency_ms=50)
        cache = CacheManager(store, clock=clock)

        async def scenario():
            await cache.read(Collection.MEMBERS)
            pending = asyncio.create_task(
                cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana", is_tither=True))
            )
            await asyncio.sleep(0)
            seen = await cache.read(Collection.MEMBERS)
            persisted = store.count(Collection.MEMBERS)
            await pending
            return seen, persisted

        seen, persisted = run(scenario())

        assert [m.id for m in seen] == ["m1"]
        assert seen[0].is_tither is True
        assert persisted == 0

    def test_write_replaces_by_id(self, store, cache):
        run(cache.read(Collection.MEMBERS))
        run(cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana")))
        run(cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana Maria")))

        members = run(cache.read(Collection.MEMBERS))

        assert [m.full_name for m in members] == ["Ana Maria"]
        assert store.count(Collection.MEMBERS) == 1

    def test_failed_write_keeps_optimistic_entry(self, store, cache):
        run(cache.read(Collection.MEMBERS))
        store.set_available(False)

        with pytest.raises(StorageError) as exc_info:
            run(cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana")))

        assert exc_info.value.is_unavailable
        assert [m.id for m in cache.snapshot(Collection.MEMBERS)] == ["m1"]
        assert cache.stats.write_failures == 1

    def test_forced_refresh_resyncs_after_failed_write(self, store, cache):
        run(cache.read(Collection.MEMBERS))
        store.set_available(False)
        with pytest.raises(StorageError):
            run(cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana")))
        store.set_available(True)

        assert run(cache.read(Collection.MEMBERS, force_refresh=True)) == []

    def test_missing_required_field_never_reaches_substrate(self, store, cache):
        with pytest.raises(ValidationError) as exc_info:
            run(cache.write(Collection.MEMBERS, Member(id="m1", full_name="  ")))

        assert exc_info.value.code is ErrorCode.VALIDATION_MISSING_FIELDS
        assert exc_info.value.context["fields"] == ["full_name"]
        assert store.stats.count(OperationType.UPSERT) == 0
        assert cache.snapshot(Collection.MEMBERS) == []

    @pytest.mark.parametrize("collection, entity", [
        (Collection.ASSETS, Asset(id="a1", name="Piano", sector="")),
        (Collection.WORKS, WorkProject(id="w1", title="Reforma", sector=" ")),
        (Collection.DISCIPLINES, Discipline(
            id="d1", member_id="m1", reason="Ausência",
            start_date="2024-01-01", end_date="2024-02-01", sector="",
        )),
    ])
    def test_blank_sector_rejected(self, store, cache, collection, entity):
        with pytest.raises(ValidationError) as exc_info:
            run(cache.write(collection, entity))

        assert exc_info.value.context["fields"] == ["sector"]
        assert store.stats.count(OperationType.UPSERT) == 0
        assert cache.snapshot(collection) == []

    def test_wrong_entity_type_rejected(self, cache):
        with pytest.raises(TypeError):
            run(cache.write(Collection.MEMBERS, Transaction(id="t1", date="2024-01-01")))

    def test_delete_is_optimistic(self, store, cache):
        run(cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana")))
        run(cache.read(Collection.MEMBERS))
        store.set_available(False)

        with pytest.raises(StorageError):
            run(cache.delete(Collection.MEMBERS, "m1"))

        assert cache.snapshot(Collection.MEMBERS) == []
        assert store.count(Collection.MEMBERS) == 1

    def test_delete_absent_id_is_noop(self, cache):
        run(cache.delete(Collection.MEMBERS, "ghost"))

        assert cache.stats.deletes == 1

    def test_root_sector_cannot_be_deleted(self, store, cache):
        run(cache.write(Collection.SECTORS, Sector(id="SEDE", name="Sede Principal")))

        with pytest.raises(ValidationError) as exc_info:
            run(cache.delete(Collection.SECTORS, "SEDE"))

        assert exc_info.value.code is ErrorCode.VALIDATION_PROTECTED_RECORD
        assert store.count(Collection.SECTORS) == 1
        assert store.stats.count(OperationType.DELETE) == 0


class TestLifecycle:
    def test_invalidate_forces_refetch(self, store, cache):
        run(cache.read(Collection.MEMBERS))
        run(cache.read(Collection.SECTORS))

        cache.invalidate()

        assert cache.state(Collection.MEMBERS) is CacheState.EMPTY
        run(cache.read(Collection.MEMBERS))
        assert fetches(store) == 3

    def test_fetch_in_flight_during_invalidate_is_discarded(self, clock):
        store = MemoryRecordStore(simulated_latency_ms=50)
        cache = CacheManager(store, clock=clock)

        async def scenario():
            loading = asyncio.create_task(cache.read(Collection.MEMBERS))
            await asyncio.sleep(0.01)
            cache.invalidate()
            await loading

        run(scenario())

        assert cache.state(Collection.MEMBERS) is CacheState.EMPTY

    def test_write_during_fetch_is_not_lost(self, clock):
        store = MemoryRecordStore(simulated_latency_ms=50)
        cache = CacheManager(store, clock=clock)

        async def scenario():
            loading = asyncio.create_task(cache.read(Collection.MEMBERS))
            await asyncio.sleep(0)
            await cache.write(Collection.MEMBERS, Member(id="m1", full_name="Ana"))
            loaded = await loading
            return loaded, await cache.read(Collection.MEMBERS)

        loaded, cached = run(scenario())

        assert store.count(Collection.MEMBERS) == 1
        assert [m.id for m in loaded] == ["m1"]
        assert [m.id for m in cached] == ["m1"]
        assert fetches(store) == 1

    def test_delete_during_fetch_is_not_resurrected(self, clock):
        store = MemoryRecordStore(simulated_latency_ms=50)
        run(store.upsert(Collection.MEMBERS, Member(id="m1", full_name="Ana")))
        cache = CacheManager(store, clock=clock)

        async def scenario():
            loading = asyncio.create_task(cache.read(Collection.MEMBERS))
            await asyncio.sleep(0)
            await cache.delete(Collection.MEMBERS, "m1")
            await loading
            return await cache.read(Collection.MEMBERS)

        assert run(scenario()) == []
        assert store.count(Collection.MEMBERS) == 0

    def test_zero_ttl_always_fetches(self, store, clock):
        cache = CacheManager(store, ttl_seconds=0, clock=clock)

        run(cache.read(Collection.MEMBERS))
        run(cache.read(Collection.MEMBERS))

        assert fetches(store) == 2

    def test_negative_ttl_rejected(self, store):
        with pytest.raises(ValueError):
            CacheManager(store, ttl_seconds=-1)

    def test_closed_cache_refuses_use(self, cache):
        run(cache.close())

        with pytest.raises(RuntimeError):
            run(cache.read(Collection.MEMBERS))
