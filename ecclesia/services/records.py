"""
Record Service: Per-Entity Operations over the Cache Manager

Thin, typed entry points the presentation layer calls. Every read and
write goes through the injected cache manager, so callers get
read-your-writes and TTL reuse without knowing the substrate.

Design:
- One get/save/delete triple per business entity
- Sector filtering happens on the cached snapshot; ``None`` or ``ALL``
  returns every sector
- No cascading deletes: removing a member leaves its transactions and
  disciplines in place
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Optional, Sequence

from ecclesia.cache.manager import CacheManager
from ecclesia.core.constants import NS_PER_MS, ROOT_SECTOR_ID, TITHE_RECORD_DAY
from ecclesia.core.entities import (
    Asset,
    Collection,
    Discipline,
    Member,
    PublicProfile,
    Sector,
    Transaction,
    TransactionType,
    WorkProject,
    new_record_id,
)
from ecclesia.core.errors import ValidationError
from ecclesia.core.types import local_today
from ecclesia.observability.logging import StructuredLogger
from ecclesia.services.compliance import filter_by_sector, find_tithe_record
from ecclesia.session.credentials import normalize_identity

logger = StructuredLogger(__name__)


class RecordService:
    """
    Usage:
        records = RecordService(cache)
        await records.save_member(Member(id="m1", full_name="Ana"))
        members = await records.get_members(sector="SEDE")
    """

    __slots__ = ("_cache",)

    def __init__(self, cache: CacheManager) -> None:
        self._cache = cache

    @property
    def cache(self) -> CacheManager:
        return self._cache

    async def _list(self, collection: Collection, sector: Optional[str]) -> list[Any]:
        return filter_by_sector(await self._cache.read(collection), sector)

    async def refresh(self, collection: Collection) -> list[Any]:
        """Force a refetch of ``collection`` regardless of freshness."""
        return await self._cache.read(collection, force_refresh=True)

    # =========================================================================
    # MEMBERS
    # =========================================================================

    async def get_members(self, sector: Optional[str] = None) -> list[Member]:
        return await self._list(Collection.MEMBERS, sector)

    async def get_member(self, member_id: str) -> Optional[Member]:
        for member in await self._cache.read(Collection.MEMBERS):
            if member.id == member_id:
                return member
        return None

    async def save_member(self, member: Member) -> Member:
        return await self._cache.write(Collection.MEMBERS, member)

    async def delete_member(self, member_id: str) -> None:
        await self._cache.delete(Collection.MEMBERS, member_id)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def get_transactions(self, sector: Optional[str] = None) -> list[Transaction]:
        return await self._list(Collection.TRANSACTIONS, sector)

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        return await self._cache.write(Collection.TRANSACTIONS, transaction)

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._cache.delete(Collection.TRANSACTIONS, transaction_id)

    async def toggle_tithe(
        self,
        member_id: str,
        year: int,
        month: int,
        sector: str = ROOT_SECTOR_ID,
        today: Optional[date] = None,
    ) -> Optional[Transaction]:
        """
        Flip the dues mark of ``member_id`` for ``year``/``month``.

        When a tithe already exists for that month it is deleted and None
        is returned. Otherwise a zero-amount TITHE_RECORD is written, dated
        today when the month is the current one and on the tenth otherwise.
        """
        if not 1 <= month <= 12:
            raise ValidationError.invalid_value("month", month, "must be between 1 and 12")

        transactions = await self._cache.read(Collection.TRANSACTIONS)
        existing = find_tithe_record(transactions, member_id, year, month)
        if existing is not None:
            await self._cache.delete(Collection.TRANSACTIONS, existing.id)
            logger.info("Tithe mark removed", member_id=member_id, year=year, month=month)
            return None

        today = today or local_today()
        if (today.year, today.month) == (year, month):
            record_date = today
        else:
            record_date = date(year, month, TITHE_RECORD_DAY)

        record = Transaction(
            id=new_record_id(),
            type=TransactionType.TITHE_RECORD,
            date=record_date.isoformat(),
            amount=0.0,
            member_id=member_id,
            description="Registro de Dízimo",
            sector=sector or ROOT_SECTOR_ID,
        )
        await self._cache.write(Collection.TRANSACTIONS, record)
        logger.info("Tithe mark recorded", member_id=member_id, year=year, month=month)
        return record

    # =========================================================================
    # DISCIPLINES, ASSETS, WORKS
    # =========================================================================

    async def get_disciplines(self, sector: Optional[str] = None) -> list[Discipline]:
        return await self._list(Collection.DISCIPLINES, sector)

    async def save_discipline(self, discipline: Discipline) -> Discipline:
        return await self._cache.write(Collection.DISCIPLINES, discipline)

    async def delete_discipline(self, discipline_id: str) -> None:
        await self._cache.delete(Collection.DISCIPLINES, discipline_id)

    async def get_assets(self, sector: Optional[str] = None) -> list[Asset]:
        return await self._list(Collection.ASSETS, sector)

    async def save_asset(self, asset: Asset) -> Asset:
        return await self._cache.write(Collection.ASSETS, asset)

    async def delete_asset(self, asset_id: str) -> None:
        await self._cache.delete(Collection.ASSETS, asset_id)

    async def get_works(self, sector: Optional[str] = None) -> list[WorkProject]:
        return await self._list(Collection.WORKS, sector)

    async def save_work(self, work: WorkProject) -> WorkProject:
        return await self._cache.write(Collection.WORKS, work)

    async def delete_work(self, work_id: str) -> None:
        await self._cache.delete(Collection.WORKS, work_id)

    # =========================================================================
    # SECTORS
    # =========================================================================

    async def get_sectors(self) -> list[Sector]:
        return await self._cache.read(Collection.SECTORS)

    async def add_sector(self, name: str) -> Sector:
        name = name.strip()
        if not name:
            raise ValidationError.invalid_value("name", name, "must be non-empty")
        sector = Sector(id=f"SETOR_{time.time_ns() // NS_PER_MS}", name=name)
        return await self._cache.write(Collection.SECTORS, sector)

    async def delete_sector(self, sector_id: str) -> None:
        """
        Raises:
            ValidationError: ``sector_id`` is the root sector.
        """
        await self._cache.delete(Collection.SECTORS, sector_id)

    async def replace_sectors(self, sectors: Sequence[Sector]) -> list[Sector]:
        """
        Make the sector collection equal to ``sectors``.

        Every given sector is upserted, sectors absent from the list are
        deleted, and the collection is refetched.

        Raises:
            ValidationError: The root sector is not in ``sectors``.
        """
        wanted = {sector.id for sector in sectors}
        if ROOT_SECTOR_ID not in wanted:
            raise ValidationError.invalid_value(
                "sectors", sorted(wanted), f"must include {ROOT_SECTOR_ID}"
            )

        current = await self._cache.read(Collection.SECTORS, force_refresh=True)
        for sector in sectors:
            await self._cache.write(Collection.SECTORS, sector)
        for stale in current:
            if stale.id not in wanted:
                await self._cache.delete(Collection.SECTORS, stale.id)

        return await self._cache.read(Collection.SECTORS, force_refresh=True)

    # =========================================================================
    # USERS
    # =========================================================================

    async def list_users(self) -> list[PublicProfile]:
        return [user.public_profile() for user in await self._cache.read(Collection.USERS)]

    async def delete_user(self, email: str) -> bool:
        """Delete the credential for ``email``; False when none exists."""
        identity = normalize_identity(email)
        removed = False
        for user in await self._cache.read(Collection.USERS):
            if normalize_identity(user.email) == identity:
                await self._cache.delete(Collection.USERS, user.id)
                removed = True
        if removed:
            logger.info("User deleted", identity=identity)
        return removed


__all__ = ["RecordService"]
