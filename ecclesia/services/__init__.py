"""
Services: per-entity record operations and compliance helpers.
"""

from ecclesia.services.compliance import (
    MonthlySummary,
    active_disciplines,
    filter_by_sector,
    find_tithe_record,
    is_discipline_active,
    is_tithe_paid,
    parse_date,
    summarize_month,
    total_asset_value,
    unpaid_tithers,
)
from ecclesia.services.records import RecordService

__all__ = [
    "RecordService",
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
