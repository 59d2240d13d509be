"""
Contract Tests: Record Adapters

Runs the same upsert/delete/filter contract against the memory, local
(SQLite) and document (fake Redis) stores, then covers behaviour that
belongs to a single substrate.

Tests:
    - Idempotent upsert keyed by id
    - Safe delete (absent ids are a no-op, nothing cascades)
    - Equality filtering
    - Local blob layout, compression and corruption
    - Redis key layout and unavailability
"""

import json
import sqlite3

import lz4.frame
import pytest

from ecclesia.core.entities import Collection, Discipline, Member, Role, Sector, Transaction
from ecclesia.core.errors import ErrorCode, StorageError
from ecclesia.storage import FieldEquals, MemoryRecordStore, OperationType, RecordAdapter
from ecclesia.storage.config import LocalConfig, RedisConfig
from ecclesia.storage.local_store import LocalRecordStore
from ecclesia.storage.redis_store import RedisDocumentStore
from ecclesia.tests.fakes import FakeRedis, run


@pytest.fixture(params=["memory", "local", "document"])
def adapter(request, local_config):
    if request.param == "memory":
        return MemoryRecordStore()
    if request.param == "local":
        return LocalRecordStore(local_config)
    return RedisDocumentStore(RedisConfig(), client=FakeRedis())


def _member(member_id: str = "m1", **overrides) -> Member:
    fields = dict(
        id=member_id,
        full_name="Ana",
        role=Role.MUSICIAN,
        is_tither=True,
        sector="SEDE",
        created_at="2024-01-01T00:00:00+00:00",
    )
    fields.update(overrides)
    return Member(**fields)


class TestAdapterContract:
    """Behaviour every substrate shares."""

    def test_implements_protocol(self, adapter):
        assert isinstance(adapter, RecordAdapter)

    def test_upsert_is_idempotent(self, adapter):
        async def scenario():
            assert (await adapter.connect()).is_ok()
            member = _member()
            await adapter.upsert(Collection.MEMBERS, member)
            await adapter.upsert(Collection.MEMBERS, member)
            members = await adapter.fetch_all(Collection.MEMBERS)
            await adapter.close()
            return member, members

        member, members = run(scenario())

        assert [m for m in members if m.id == "m1"] == [member]

    def test_upsert_replaces_whole_record(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.upsert(Collection.MEMBERS, _member(phone="111"))
            await adapter.upsert(Collection.MEMBERS, _member(full_name="Ana Maria"))
            members = await adapter.fetch_all(Collection.MEMBERS)
            await adapter.close()
            return members

        (member,) = run(scenario())

        assert member.full_name == "Ana Maria"
        assert member.phone == ""

    def test_delete_is_safe(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.upsert(Collection.MEMBERS, _member("m1"))
            await adapter.upsert(Collection.MEMBERS, _member("m2"))
            await adapter.delete_by_id(Collection.MEMBERS, "m1")
            await adapter.delete_by_id(Collection.MEMBERS, "m1")
            await adapter.delete_by_id(Collection.MEMBERS, "never-existed")
            members = await adapter.fetch_all(Collection.MEMBERS)
            await adapter.close()
            return members

        members = run(scenario())

        assert [m.id for m in members] == ["m2"]

    def test_delete_does_not_cascade(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.upsert(Collection.MEMBERS, _member("m1"))
            await adapter.upsert(
                Collection.DISCIPLINES,
                Discipline(
                    id="d1",
                    member_id="m1",
                    reason="Ausência",
                    start_date="2024-01-01",
                    end_date="2024-02-01",
                ),
            )
            await adapter.delete_by_id(Collection.MEMBERS, "m1")
            disciplines = await adapter.fetch_all(Collection.DISCIPLINES)
            await adapter.close()
            return disciplines

        disciplines = run(scenario())

        assert [d.member_id for d in disciplines] == ["m1"]

    def test_fetch_filtered(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.upsert(Collection.MEMBERS, _member("m1", sector="SETOR_1"))
            await adapter.upsert(Collection.MEMBERS, _member("m2", sector="SETOR_2"))
            by_sector = await adapter.fetch_filtered(
                Collection.MEMBERS, FieldEquals("sector", "SETOR_2")
            )
            by_id = await adapter.fetch_filtered(Collection.MEMBERS, FieldEquals("id", "m1"))
            none = await adapter.fetch_filtered(Collection.MEMBERS, FieldEquals("id", "zz"))
            await adapter.close()
            return by_sector, by_id, none

        by_sector, by_id, none = run(scenario())

        assert [m.id for m in by_sector] == ["m2"]
        assert [m.id for m in by_id] == ["m1"]
        assert none == []

    def test_collections_are_isolated(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.upsert(Collection.SECTORS, Sector(id="SEDE", name="Sede"))
            members = await adapter.fetch_all(Collection.MEMBERS)
            await adapter.close()
            return members

        assert run(scenario()) == []

    def test_stats_count_successful_calls(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.upsert(Collection.MEMBERS, _member())
            await adapter.fetch_all(Collection.MEMBERS)
            await adapter.close()

        run(scenario())

        assert adapter.stats.count(OperationType.UPSERT) == 1
        assert adapter.stats.count(OperationType.FETCH_ALL) == 1
        assert adapter.stats.errors == 0
        assert adapter.stats.avg_latency_ms(OperationType.UPSERT) >= 0.0
        assert adapter.stats.avg_latency_ms(OperationType.DELETE) == 0.0

    def test_use_after_close_fails(self, adapter):
        async def scenario():
            await adapter.connect()
            await adapter.close()
            await adapter.fetch_all(Collection.MEMBERS)

        with pytest.raises(StorageError) as exc_info:
            run(scenario())

        assert exc_info.value.code is ErrorCode.STORAGE_UNAVAILABLE


class TestMemoryStore:
    def test_unavailable_store_raises(self):
        store = MemoryRecordStore()
        store.set_available(False)

        with pytest.raises(StorageError) as exc_info:
            run(store.fetch_all(Collection.MEMBERS))

        assert exc_info.value.is_unavailable
        assert store.stats.errors == 1

    def test_raw_records_keep_camel_layout(self):
        store = MemoryRecordStore()
        run(store.upsert(Collection.MEMBERS, _member()))

        (record,) = store.raw(Collection.MEMBERS)

        assert record["fullName"] == "Ana"
        assert record["isTither"] is True
        assert record["role"] == "Músico"


class TestLocalStore:
    """SQLite blob layout."""

    def _raw_row(self, config: LocalConfig, key: str):
        conn = sqlite3.connect(str(config.db_path))
        try:
            return conn.execute(
                "SELECT value, compressed FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()

    def test_collection_is_one_json_array(self, local_config):
        store = LocalRecordStore(local_config)

        async def scenario():
            await store.connect()
            await store.upsert(Collection.SECTORS, Sector(id="SEDE", name="Sede Principal"))
            await store.close()

        run(scenario())
        value, compressed = self._raw_row(local_config, "ecclesia_sectors")

        assert compressed == 0
        records = json.loads(bytes(value).decode("utf-8"))
        assert records[0]["id"] == "SEDE"
        assert records[0]["name"] == "Sede Principal"
        assert "createdAt" in records[0]

    def test_large_blob_is_lz4_compressed(self, tmp_path):
        config = LocalConfig(
            data_dir=tmp_path, simulated_latency_ms=0, compression_threshold_bytes=64
        )
        store = LocalRecordStore(config)

        async def scenario():
            await store.connect()
            for i in range(10):
                await store.upsert(Collection.MEMBERS, _member(f"m{i}"))
            members = await store.fetch_all(Collection.MEMBERS)
            await store.close()
            return members

        members = run(scenario())
        value, compressed = self._raw_row(config, "ecclesia_members")

        assert len(members) == 10
        assert compressed == 1
        assert len(json.loads(lz4.frame.decompress(value))) == 10

    def test_persists_across_reopen(self, local_config):
        async def write():
            store = LocalRecordStore(local_config)
            await store.connect()
            await store.upsert(Collection.MEMBERS, _member())
            await store.close()

        async def read():
            store = LocalRecordStore(local_config)
            await store.connect()
            members = await store.fetch_all(Collection.MEMBERS)
            await store.close()
            return members

        run(write())

        assert [m.id for m in run(read())] == ["m1"]

    def test_imported_legacy_blob_decodes(self, local_config):
        store = LocalRecordStore(local_config)
        legacy = [
            {"id": "1", "fullName": "João Silva", "role": "Diácono", "isTither": True},
            {"id": "2", "fullName": "Sem Setor", "sector": ""},
        ]

        async def scenario():
            await store.connect()
            await store.import_blob(Collection.MEMBERS, legacy)
            members = await store.fetch_all(Collection.MEMBERS)
            exported = await store.export_blob(Collection.MEMBERS)
            await store.close()
            return members, exported

        (joao, sem_setor), exported = run(scenario())

        assert joao.role is Role.DEACON
        assert joao.is_tither is True
        assert sem_setor.sector == "SEDE"
        assert exported == legacy

    def test_corrupt_blob_raises_corruption(self, local_config):
        store = LocalRecordStore(local_config)

        async def scenario():
            await store.connect()
            store._conn.execute(
                "INSERT INTO kv_store (key, value, compressed, updated_at) VALUES (?, ?, 0, '')",
                ("ecclesia_members", b"{not json"),
            )
            try:
                await store.fetch_all(Collection.MEMBERS)
            finally:
                await store.close()

        with pytest.raises(StorageError) as exc_info:
            run(scenario())

        assert exc_info.value.code is ErrorCode.STORAGE_CORRUPTION

    def test_delete_of_absent_id_does_not_write(self, local_config):
        store = LocalRecordStore(local_config)

        async def scenario():
            await store.connect()
            await store.delete_by_id(Collection.MEMBERS, "ghost")
            await store.close()

        run(scenario())

        assert self._raw_row(local_config, "ecclesia_members") is None


class TestRedisStore:
    """Key layout and failure translation."""

    def test_record_hash_and_index(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            await store.upsert(Collection.MEMBERS, _member())
            return await store.record_timestamps(Collection.MEMBERS, "m1")

        stamps = run(scenario())

        assert client.sets["ecclesia:members:ids"] == {"m1"}
        document = json.loads(client.hashes["ecclesia:members:m1"]["d"])
        assert document["fullName"] == "Ana"
        assert stamps["created"] and stamps["updated"]
        assert client.pipelines[-1] == (True, ["hset", "hsetnx", "sadd", "sadd"])
        assert client.sets["ecclesia:members:by:sector:SEDE"] == {"m1"}

    def test_first_write_timestamp_is_kept(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            await store.upsert(Collection.MEMBERS, _member())
            first = dict(client.hashes["ecclesia:members:m1"])
            await store.upsert(Collection.MEMBERS, _member(full_name="Ana Maria"))
            return first, client.hashes["ecclesia:members:m1"]

        first, second = run(scenario())

        assert second["c"] == first["c"]

    def test_filter_on_indexed_field_uses_index(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            await store.upsert(Collection.MEMBERS, _member("m1", email="ana@igreja.org"))
            await store.upsert(Collection.MEMBERS, _member("m2", sector="SETOR_1"))
            by_email = await store.fetch_filtered(
                Collection.MEMBERS, FieldEquals("email", "ana@igreja.org")
            )
            by_sector = await store.fetch_filtered(
                Collection.MEMBERS, FieldEquals("sector", "SETOR_1")
            )
            return by_email, by_sector

        by_email, by_sector = run(scenario())

        assert [m.id for m in by_email] == ["m1"]
        assert [m.id for m in by_sector] == ["m2"]
        assert client.sets["ecclesia:members:by:email:ana@igreja.org"] == {"m1"}
        assert store.stats.count(OperationType.FETCH_ALL) == 0

    def test_update_moves_record_between_index_sets(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            await store.upsert(Collection.MEMBERS, _member(sector="SEDE"))
            await store.upsert(Collection.MEMBERS, _member(sector="SETOR_2"))
            return (
                await store.fetch_filtered(Collection.MEMBERS, FieldEquals("sector", "SEDE")),
                await store.fetch_filtered(Collection.MEMBERS, FieldEquals("sector", "SETOR_2")),
            )

        old, new = run(scenario())

        assert old == []
        assert [m.id for m in new] == ["m1"]
        assert client.sets["ecclesia:members:by:sector:SEDE"] == set()

    def test_delete_unlinks_index_sets(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)
        tx = Transaction(id="t1", date="2024-01-07", member_id="m1", sector="SEDE")

        async def scenario():
            await store.connect()
            await store.upsert(Collection.TRANSACTIONS, tx)
            await store.delete_by_id(Collection.TRANSACTIONS, "t1")
            return await store.fetch_filtered(
                Collection.TRANSACTIONS, FieldEquals("member_id", "m1")
            )

        assert run(scenario()) == []
        assert client.sets["ecclesia:transactions:by:member_id:m1"] == set()
        assert client.sets["ecclesia:transactions:by:sector:SEDE"] == set()
        assert client.pipelines[-1] == (True, ["delete", "srem", "srem", "srem"])

    def test_filter_on_unindexed_field_reads_collection(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            await store.upsert(Collection.MEMBERS, _member("m1"))
            await store.upsert(Collection.MEMBERS, _member("m2", full_name="Rui"))
            return await store.fetch_filtered(Collection.MEMBERS, FieldEquals("full_name", "Rui"))

        assert [m.id for m in run(scenario())] == ["m2"]
        assert store.stats.count(OperationType.FETCH_ALL) == 1

    def test_dangling_index_entry_is_skipped(self):
        client = FakeRedis()
        client.sets["ecclesia:transactions:ids"] = {"t1", "gone"}
        client.hashes["ecclesia:transactions:t1"] = {
            "d": json.dumps({"id": "t1", "type": "Oferta", "amount": 10, "date": "2024-01-07"})
        }
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            return await store.fetch_all(Collection.TRANSACTIONS)

        (tx,) = run(scenario())

        assert isinstance(tx, Transaction)
        assert tx.amount == 10.0

    def test_connect_to_unreachable_server_returns_err(self):
        client = FakeRedis()
        client.down = True
        store = RedisDocumentStore(RedisConfig(), client=client)

        result = run(store.connect())

        assert result.is_err()
        assert result.error.is_unavailable

    def test_connection_loss_raises_unavailable(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            client.down = True
            await store.upsert(Collection.MEMBERS, _member())

        with pytest.raises(StorageError) as exc_info:
            run(scenario())

        assert exc_info.value.is_unavailable
        assert store.stats.errors == 1

    def test_close_releases_client(self):
        client = FakeRedis()
        store = RedisDocumentStore(RedisConfig(), client=client)

        async def scenario():
            await store.connect()
            await store.close()

        run(scenario())

        assert client.closed
