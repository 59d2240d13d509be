"""
Relational substrate: asyncpg engine, table schema and record store.
"""

from ecclesia.storage.relational.engine import PostgresEngine, QueryResult
from ecclesia.storage.relational.schema import RelationalSchema
from ecclesia.storage.relational.store import PostgresRecordStore

__all__ = [
    "PostgresEngine",
    "QueryResult",
    "RelationalSchema",
    "PostgresRecordStore",
]
