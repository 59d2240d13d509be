"""
Integration Tests: Record Service over Cache and Memory Store

Tests:
    - Optimistic read-your-write for members
    - Dues marking and unmarking
    - Sector management (root protected, bulk replace)
    - User listing and removal
"""

import asyncio
from datetime import date

import pytest

from ecclesia.cache import CacheManager
from ecclesia.core.entities import (
    Asset,
    Collection,
    Discipline,
    Member,
    Sector,
    Transaction,
    TransactionType,
    User,
    WorkProject,
)
from ecclesia.core.errors import ErrorCode, ValidationError
from ecclesia.services import RecordService, is_tithe_paid
from ecclesia.storage import MemoryRecordStore, OperationType
from ecclesia.tests.fakes import run


@pytest.fixture
def records(cache):
    return RecordService(cache)


class TestMembers:
    def test_saved_member_visible_before_confirmation(self, clock):
        store = MemoryRecordStore(simulated_latency_ms=50)
        records = RecordService(CacheManager(store, clock=clock))

        async def scenario():
            await records.get_members()
            pending = asyncio.create_task(records.save_member(
                Member(id="m1", full_name="Ana", sector="SEDE", is_tither=True)
            ))
            await asyncio.sleep(0)
            members = await records.get_members()
            await pending
            return members

        members = run(scenario())

        (ana,) = [m for m in members if m.id == "m1"]
        assert ana.is_tither is True

    def test_sector_filter(self, records):
        run(records.save_member(Member(id="m1", full_name="Ana", sector="SEDE")))
        run(records.save_member(Member(id="m2", full_name="Rui", sector="SETOR_1")))

        assert [m.id for m in run(records.get_members("SETOR_1"))] == ["m2"]
        assert len(run(records.get_members("ALL"))) == 2
        assert len(run(records.get_members())) == 2

    def test_get_member(self, records):
        run(records.save_member(Member(id="m1", full_name="Ana")))

        assert run(records.get_member("m1")).full_name == "Ana"
        assert run(records.get_member("zz")) is None

    def test_delete_member_leaves_transactions(self, records):
        run(records.save_member(Member(id="m1", full_name="Ana")))
        run(records.save_transaction(Transaction(id="t1", date="2024-01-10", member_id="m1")))

        run(records.delete_member("m1"))

        assert run(records.get_members()) == []
        assert [t.member_id for t in run(records.get_transactions())] == ["m1"]


class TestOtherCollections:
    @pytest.mark.parametrize("kind, collection, entity", [
        ("discipline", Collection.DISCIPLINES, Discipline(
            id="d1", member_id="m1", reason="Ausência",
            start_date="2024-01-01", end_date="2024-03-01", sector="SETOR_1",
        )),
        ("asset", Collection.ASSETS, Asset(id="a1", name="Piano", value=12000.0, sector="SETOR_1")),
        ("work", Collection.WORKS, WorkProject(id="w1", title="Reforma do telhado", sector="SETOR_1")),
    ])
    def test_save_list_delete(self, records, store, kind, collection, entity):
        save = getattr(records, f"save_{kind}")
        get = getattr(records, f"get_{kind}s")
        delete = getattr(records, f"delete_{kind}")

        run(save(entity))
        assert run(get("SETOR_1")) == [entity]
        assert run(get("SEDE")) == []

        run(delete(entity.id))
        assert run(get()) == []
        assert run(store.fetch_all(collection)) == []


class TestTithe:
    def test_saved_then_deleted_record_is_not_paid(self, records):
        tx = Transaction(
            id="t1",
            type=TransactionType.TITHE_RECORD,
            date="2024-05-10",
            member_id="m1",
        )
        run(records.save_transaction(tx))
        assert is_tithe_paid(run(records.get_transactions()), "m1", 2024, 5)

        run(records.delete_transaction("t1"))

        assert not is_tithe_paid(run(records.get_transactions()), "m1", 2024, 5)

    def test_toggle_creates_zero_amount_record_on_tenth(self, records):
        record = run(records.toggle_tithe("m1", 2024, 3, sector="SETOR_1", today=date(2024, 5, 20)))

        assert record.type is TransactionType.TITHE_RECORD
        assert record.amount == 0.0
        assert record.date == "2024-03-10"
        assert record.sector == "SETOR_1"
        assert is_tithe_paid(run(records.get_transactions()), "m1", 2024, 3)

    def test_toggle_in_current_month_uses_today(self, records):
        record = run(records.toggle_tithe("m1", 2024, 5, today=date(2024, 5, 20)))

        assert record.date == "2024-05-20"

    def test_second_toggle_removes_mark(self, records, store):
        run(records.toggle_tithe("m1", 2024, 3, today=date(2024, 5, 20)))

        assert run(records.toggle_tithe("m1", 2024, 3, today=date(2024, 5, 20))) is None

        assert run(records.get_transactions()) == []
        assert store.count(Collection.TRANSACTIONS) == 0

    def test_toggle_removes_legacy_tithe(self, records):
        run(records.save_transaction(Transaction(
            id="old", type=TransactionType.TITHE, date="2023-11-05", amount=250.0, member_id="m1"
        )))

        run(records.toggle_tithe("m1", 2023, 11, today=date(2024, 1, 1)))

        assert run(records.get_transactions()) == []

    def test_invalid_month_rejected(self, records):
        with pytest.raises(ValidationError):
            run(records.toggle_tithe("m1", 2024, 13))


class TestSectors:
    def test_add_sector(self, records):
        sector = run(records.add_sector("  Setor Norte "))

        assert sector.id.startswith("SETOR_")
        assert sector.name == "Setor Norte"
        assert sector in run(records.get_sectors())

    def test_blank_sector_name_rejected(self, records):
        with pytest.raises(ValidationError):
            run(records.add_sector("  "))

    def test_root_sector_cannot_be_deleted(self, records):
        run(records.replace_sectors([Sector(id="SEDE", name="Sede Principal")]))

        with pytest.raises(ValidationError) as exc_info:
            run(records.delete_sector("SEDE"))

        assert exc_info.value.code is ErrorCode.VALIDATION_PROTECTED_RECORD
        assert [s.id for s in run(records.get_sectors())] == ["SEDE"]

    def test_replace_sectors(self, records, store):
        run(records.replace_sectors([
            Sector(id="SEDE", name="Sede Principal"),
            Sector(id="SETOR_1", name="Setor 1"),
            Sector(id="SETOR_2", name="Setor 2"),
        ]))

        result = run(records.replace_sectors([
            Sector(id="SEDE", name="Sede Principal"),
            Sector(id="SETOR_2", name="Setor Dois"),
            Sector(id="SETOR_3", name="Setor 3"),
        ]))

        assert sorted((s.id, s.name) for s in result) == [
            ("SEDE", "Sede Principal"),
            ("SETOR_2", "Setor Dois"),
            ("SETOR_3", "Setor 3"),
        ]
        assert store.count(Collection.SECTORS) == 3

    def test_replace_without_root_rejected(self, records, store):
        with pytest.raises(ValidationError):
            run(records.replace_sectors([Sector(id="SETOR_1", name="Setor 1")]))

        assert store.stats.count(OperationType.UPSERT) == 0


class TestUsers:
    def _user(self, email: str) -> User:
        return User(id=email, email=email, name=email.split("@")[0], password_hash="pbkdf2_x$1$00$00")

    def test_list_users_hides_hashes(self, records, cache):
        run(cache.write(Collection.USERS, self._user("ana@b.com")))

        (profile,) = run(records.list_users())

        assert profile.email == "ana@b.com"
        assert not hasattr(profile, "password_hash")

    def test_delete_user(self, records, cache, store):
        run(cache.write(Collection.USERS, self._user("ana@b.com")))
        run(cache.write(Collection.USERS, self._user("rui@b.com")))

        assert run(records.delete_user(" ANA@b.com")) is True
        assert run(records.delete_user("ghost@b.com")) is False

        assert [p.email for p in run(records.list_users())] == ["rui@b.com"]
        assert store.count(Collection.USERS) == 1


class TestRefresh:
    def test_refresh_refetches(self, records, store):
        run(records.get_assets())
        run(records.refresh(Collection.ASSETS))

        assert store.stats.count(OperationType.FETCH_ALL) == 2
