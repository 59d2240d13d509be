"""
Relational Schema: DDL and Statements for PostgreSQL Tables

Tables (one per collection, named after it):
- sectors, members, transactions, disciplines, assets, works, users

Design:
- TEXT primary keys (ids are opaque strings chosen by callers)
- Dates stay ISO-8601 TEXT, matching every other substrate
- Money and asset values are DOUBLE PRECISION
- ``works.receipt_urls`` is TEXT[]
- Every column list is explicit and must match the entity mapper's
  snake_case record shape
- ``created_at DESC`` index backs the capped full-collection read
"""

from __future__ import annotations

import logging
from typing import Final

from ecclesia.core.constants import ROOT_SECTOR_ID
from ecclesia.core.entities import Collection
from ecclesia.core.errors import StorageError
from ecclesia.core.types import Err, Ok, Result
from ecclesia.storage.relational.engine import PostgresEngine

logger = logging.getLogger(__name__)

_SECTOR_FK: Final[str] = f"TEXT NOT NULL DEFAULT '{ROOT_SECTOR_ID}'"

# =============================================================================
# TABLE DEFINITIONS
# =============================================================================

TABLES: Final[dict[Collection, tuple[tuple[str, str], ...]]] = {
    Collection.SECTORS: (
        ("id", "TEXT PRIMARY KEY"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("created_at", "TEXT NOT NULL"),
    ),
    Collection.MEMBERS: (
        ("id", "TEXT PRIMARY KEY"),
        ("full_name", "TEXT NOT NULL DEFAULT ''"),
        ("birth_date", "TEXT NOT NULL DEFAULT ''"),
        ("phone", "TEXT NOT NULL DEFAULT ''"),
        ("email", "TEXT NOT NULL DEFAULT ''"),
        ("address", "TEXT NOT NULL DEFAULT ''"),
        ("baptism_date", "TEXT"),
        ("is_baptized", "BOOLEAN"),
        ("role", "TEXT NOT NULL"),
        ("is_tither", "BOOLEAN NOT NULL DEFAULT FALSE"),
        ("sector", _SECTOR_FK),
        ("photo_url", "TEXT"),
        ("created_at", "TEXT NOT NULL"),
    ),
    Collection.TRANSACTIONS: (
        ("id", "TEXT PRIMARY KEY"),
        ("type", "TEXT NOT NULL"),
        ("date", "TEXT NOT NULL"),
        ("amount", "DOUBLE PRECISION NOT NULL DEFAULT 0"),
        ("member_id", "TEXT"),
        ("description", "TEXT"),
        ("category", "TEXT"),
        ("receipt_url", "TEXT"),
        ("responsible", "TEXT"),
        ("payment_method", "TEXT"),
        ("pix_destination", "TEXT"),
        ("sector", _SECTOR_FK),
        ("created_at", "TEXT NOT NULL"),
    ),
    Collection.DISCIPLINES: (
        ("id", "TEXT PRIMARY KEY"),
        ("member_id", "TEXT NOT NULL"),
        ("reason", "TEXT NOT NULL DEFAULT ''"),
        ("start_date", "TEXT NOT NULL"),
        ("end_date", "TEXT NOT NULL"),
        ("sector", _SECTOR_FK),
        ("created_at", "TEXT NOT NULL"),
    ),
    Collection.ASSETS: (
        ("id", "TEXT PRIMARY KEY"),
        ("name", "TEXT NOT NULL"),
        ("description", "TEXT"),
        ("acquisition_date", "TEXT NOT NULL DEFAULT ''"),
        ("value", "DOUBLE PRECISION NOT NULL DEFAULT 0"),
        ("quantity", "INTEGER NOT NULL DEFAULT 1"),
        ("condition", "TEXT NOT NULL"),
        ("location", "TEXT NOT NULL DEFAULT ''"),
        ("sector", _SECTOR_FK),
        ("photo_url", "TEXT"),
        ("created_at", "TEXT NOT NULL"),
    ),
    Collection.WORKS: (
        ("id", "TEXT PRIMARY KEY"),
        ("title", "TEXT NOT NULL"),
        ("description", "TEXT NOT NULL DEFAULT ''"),
        ("start_date", "TEXT NOT NULL DEFAULT ''"),
        ("end_date", "TEXT"),
        ("status", "TEXT NOT NULL"),
        ("total_cost", "DOUBLE PRECISION NOT NULL DEFAULT 0"),
        ("sector", _SECTOR_FK),
        ("responsible", "TEXT"),
        ("receipt_url", "TEXT"),
        ("receipt_urls", "TEXT[] NOT NULL DEFAULT '{}'"),
        ("created_at", "TEXT NOT NULL"),
    ),
    Collection.USERS: (
        ("id", "TEXT PRIMARY KEY"),
        ("email", "TEXT NOT NULL UNIQUE"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("password_hash", "TEXT NOT NULL"),
        ("created_at", "TEXT NOT NULL"),
    ),
}

# Secondary indexes beyond the created_at index every table gets.
EXTRA_INDEXES: Final[tuple[tuple[Collection, str], ...]] = (
    (Collection.MEMBERS, "sector"),
    (Collection.TRANSACTIONS, "member_id"),
    (Collection.TRANSACTIONS, "sector"),
    (Collection.DISCIPLINES, "member_id"),
)


def table_name(collection: Collection) -> str:
    return collection.value


def columns(collection: Collection) -> tuple[str, ...]:
    return tuple(name for name, _ in TABLES[collection])


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


# =============================================================================
# STATEMENT BUILDERS
# =============================================================================

def create_table_sql(collection: Collection) -> str:
    body = ",\n    ".join(f"{_quote(name)} {sql_type}" for name, sql_type in TABLES[collection])
    return f"CREATE TABLE IF NOT EXISTS {table_name(collection)} (\n    {body}\n)"


def create_index_sql(collection: Collection) -> list[str]:
    table = table_name(collection)
    statements = [
        f"CREATE INDEX IF NOT EXISTS idx_{table}_created_at "
        f"ON {table} ({_quote('created_at')} DESC)"
    ]
    for indexed, column in EXTRA_INDEXES:
        if indexed is collection:
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_{column} ON {table} ({_quote(column)})"
            )
    return statements


def select_recent_sql(collection: Collection) -> str:
    """Newest rows first, capped by the ``$1`` limit."""
    return (
        f"SELECT * FROM {table_name(collection)} "
        f"ORDER BY {_quote('created_at')} DESC LIMIT $1"
    )


def select_where_sql(collection: Collection, column: str) -> str:
    """
    Equality filter on one column.

    Raises:
        ValueError: If ``column`` is not part of the table.
    """
    if column not in columns(collection):
        raise ValueError(f"{table_name(collection)} has no column {column!r}")
    return (
        f"SELECT * FROM {table_name(collection)} WHERE {_quote(column)} = $1 "
        f"ORDER BY {_quote('created_at')} DESC"
    )


def upsert_sql(collection: Collection) -> str:
    """
    Insert-or-replace keyed by id; parameters follow ``columns(collection)``.
    """
    cols = columns(collection)
    column_list = ", ".join(_quote(c) for c in cols)
    placeholders = ", ".join(f"${i}" for i in range(1, len(cols) + 1))
    updates = ", ".join(f"{_quote(c)} = EXCLUDED.{_quote(c)}" for c in cols if c != "id")
    return (
        f"INSERT INTO {table_name(collection)} ({column_list}) VALUES ({placeholders}) "
        f"ON CONFLICT ({_quote('id')}) DO UPDATE SET {updates}"
    )


def delete_sql(collection: Collection) -> str:
    return f"DELETE FROM {table_name(collection)} WHERE {_quote('id')} = $1"


# =============================================================================
# SCHEMA MANAGER
# =============================================================================

class RelationalSchema:
    """
    Idempotent schema creation for every collection table.
    """

    __slots__ = ("_engine",)

    def __init__(self, engine: PostgresEngine) -> None:
        self._engine = engine

    @staticmethod
    def statements() -> list[str]:
        result: list[str] = []
        for collection in Collection:
            result.append(create_table_sql(collection))
            result.extend(create_index_sql(collection))
        return result

    async def create_all(self) -> Result[None, StorageError]:
        """Create tables and indexes that do not exist yet."""
        for statement in self.statements():
            result = await self._engine.execute(statement)
            if result.is_err():
                logger.error("Schema statement failed", extra={"statement": statement[:80]})
                return Err(result.error)
        logger.info("Relational schema ready", extra={"tables": len(TABLES)})
        return Ok(None)


__all__ = [
    "TABLES",
    "RelationalSchema",
    "columns",
    "table_name",
    "create_table_sql",
    "select_recent_sql",
    "select_where_sql",
    "upsert_sql",
    "delete_sql",
]
