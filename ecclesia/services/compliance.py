"""
Compliance and Summary Helpers

Pure functions over entity snapshots returned by the cache manager. None
of them touch storage; callers pass whatever ``RecordService`` returned.

Design:
- Dates are stored as ISO-8601 strings; only the calendar part counts
- Unparseable dates never match any month
- Both the legacy TITHE and the TITHE_RECORD marker count as paid
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence, TypeVar

from ecclesia.core.constants import ALL_SECTORS
from ecclesia.core.entities import Asset, Discipline, Member, Transaction, TransactionType
from ecclesia.core.types import local_today

T = TypeVar("T")

_TITHE_TYPES = frozenset({TransactionType.TITHE, TransactionType.TITHE_RECORD})


def filter_by_sector(items: Iterable[T], sector: Optional[str]) -> list[T]:
    """Keep items in ``sector``; None or ALL keeps everything."""
    if sector is None or sector == ALL_SECTORS:
        return list(items)
    return [item for item in items if getattr(item, "sector", None) == sector]


def parse_date(value: Optional[str]) -> Optional[date]:
    """Calendar day of a stored date or timestamp string, else None."""
    if not value:
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _in_month(value: Optional[str], year: int, month: int) -> bool:
    day = parse_date(value)
    return day is not None and day.year == year and day.month == month


def find_tithe_record(
    transactions: Iterable[Transaction],
    member_id: str,
    year: int,
    month: int,
) -> Optional[Transaction]:
    """First tithe transaction of ``member_id`` dated in ``year``/``month``."""
    for tx in transactions:
        if (
            tx.type in _TITHE_TYPES
            and tx.member_id == member_id
            and _in_month(tx.date, year, month)
        ):
            return tx
    return None


def is_tithe_paid(
    transactions: Iterable[Transaction],
    member_id: str,
    year: int,
    month: int,
) -> bool:
    return find_tithe_record(transactions, member_id, year, month) is not None


def unpaid_tithers(
    members: Iterable[Member],
    transactions: Sequence[Transaction],
    year: int,
    month: int,
) -> list[Member]:
    """Members flagged as tithers with no tithe in the given month."""
    return [
        member
        for member in members
        if member.is_tither and not is_tithe_paid(transactions, member.id, year, month)
    ]


def is_discipline_active(discipline: Discipline, today: Optional[date] = None) -> bool:
    """Active while ``end_date`` has not passed; unparseable end dates are inactive."""
    end = parse_date(discipline.end_date)
    if end is None:
        return False
    return end >= (today or local_today())


def active_disciplines(
    disciplines: Iterable[Discipline],
    today: Optional[date] = None,
) -> list[Discipline]:
    today = today or local_today()
    return [d for d in disciplines if is_discipline_active(d, today)]


def total_asset_value(assets: Iterable[Asset]) -> float:
    return sum(asset.total_value for asset in assets)


# =============================================================================
# MONTHLY SUMMARY
# =============================================================================
@dataclass(frozen=True, slots=True)
class MonthlySummary:
    year: int
    month: int
    tithes: float = 0.0
    offerings: float = 0.0
    special_offerings: float = 0.0
    expenses: float = 0.0

    @property
    def income(self) -> float:
        return self.tithes + self.offerings + self.special_offerings

    @property
    def balance(self) -> float:
        return self.income - self.expenses


def summarize_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> MonthlySummary:
    """
    Totals per transaction kind for one month.

    TITHE_RECORD entries only mark compliance and carry no amount, so they
    are left out of the totals.
    """
    totals = {
        TransactionType.TITHE: 0.0,
        TransactionType.OFFERING: 0.0,
        TransactionType.SPECIAL_OFFERING: 0.0,
        TransactionType.EXPENSE: 0.0,
    }
    for tx in transactions:
        if tx.type in totals and _in_month(tx.date, year, month):
            totals[tx.type] += tx.amount
    return MonthlySummary(
        year=year,
        month=month,
        tithes=totals[TransactionType.TITHE],
        offerings=totals[TransactionType.OFFERING],
        special_offerings=totals[TransactionType.SPECIAL_OFFERING],
        expenses=totals[TransactionType.EXPENSE],
    )


__all__ = [
    "MonthlySummary",
    "active_disciplines",
    "filter_by_sector",
    "find_tithe_record",
    "is_discipline_active",
    "is_tithe_paid",
    "parse_date",
    "summarize_month",
    "total_asset_value",
    "unpaid_tithers",
]
