"""
PostgreSQL Record Store

Relational substrate. Each collection is a typed table (see schema.py);
records travel through the entity mapper in snake_case form so column
names equal entity attribute names.

Read semantics:
- ``fetch_all`` returns at most ``fetch_limit`` rows, newest
  ``created_at`` first; callers must not assume completeness beyond the
  cap. Hitting the cap is logged.
- ``fetch_filtered`` issues ``WHERE column = $1`` on a known column.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from ecclesia.core.entities import Collection
from ecclesia.core.errors import StorageError
from ecclesia.core.types import Ok, Result
from ecclesia.storage.config import BackendKind, PostgresConfig
from ecclesia.storage.mapper import FieldNaming, from_storage, to_storage, to_storage_value
from ecclesia.storage.protocols import AdapterStats, FieldEquals, OperationType
from ecclesia.storage.relational import schema as S
from ecclesia.storage.relational.engine import PostgresEngine

logger = logging.getLogger(__name__)


class PostgresRecordStore:
    """
    Record adapter over an asyncpg connection pool.

    Usage:
        store = PostgresRecordStore(PostgresConfig(host="db.internal"))
        result = await store.connect()
        await store.upsert(Collection.TRANSACTIONS, tx)
    """

    __slots__ = ("kind", "stats", "_config", "_engine", "_schema")

    def __init__(self, config: PostgresConfig, pool: Optional[Any] = None) -> None:
        self.kind = BackendKind.RELATIONAL
        self.stats = AdapterStats()
        self._config = config
        self._engine = PostgresEngine(config, pool=pool)
        self._schema = S.RelationalSchema(self._engine)

    @property
    def engine(self) -> PostgresEngine:
        return self._engine

    async def connect(self) -> Result[None, StorageError]:
        result = await self._engine.connect()
        if result.is_err():
            return result
        if self._config.create_schema:
            return await self._schema.create_all()
        return Ok(None)

    async def close(self) -> None:
        await self._engine.close()

    def _unwrap(self, result: Result[Any, StorageError]) -> Any:
        if result.is_err():
            self.stats.errors += 1
            raise result.error
        return result.unwrap()

    def _decode_rows(self, collection: Collection, rows: list[dict[str, Any]]) -> list[Any]:
        entity_type = collection.entity_type
        return [from_storage(entity_type, row, FieldNaming.SNAKE) for row in rows]

    # -------------------------------------------------------------------------
    # RECORD OPERATIONS
    # -------------------------------------------------------------------------

    async def fetch_all(self, collection: Collection) -> list[Any]:
        start_ns = time.perf_counter_ns()
        limit = self._config.fetch_limit
        query = self._unwrap(
            await self._engine.fetch(S.select_recent_sql(collection), limit)
        )
        if query.row_count >= limit:
            logger.warning(
                "Collection read capped",
                extra={"collection": collection.value, "limit": limit},
            )
        result = self._decode_rows(collection, query.rows)
        self.stats.record(OperationType.FETCH_ALL, time.perf_counter_ns() - start_ns)
        return result

    async def fetch_filtered(
        self,
        collection: Collection,
        predicate: FieldEquals,
    ) -> list[Any]:
        start_ns = time.perf_counter_ns()
        column = predicate.field
        if column not in S.columns(collection):
            raise ValueError(f"cannot filter {collection.value} on {column!r}")
        query = self._unwrap(
            await self._engine.fetch(
                S.select_where_sql(collection, column),
                to_storage_value(predicate.value),
            )
        )
        result = self._decode_rows(collection, query.rows)
        self.stats.record(OperationType.FETCH_FILTERED, time.perf_counter_ns() - start_ns)
        return result

    async def upsert(self, collection: Collection, entity: Any) -> None:
        start_ns = time.perf_counter_ns()
        row = to_storage(entity, FieldNaming.SNAKE)
        args = [row[column] for column in S.columns(collection)]
        self._unwrap(await self._engine.execute(S.upsert_sql(collection), *args))
        self.stats.record(OperationType.UPSERT, time.perf_counter_ns() - start_ns)

    async def delete_by_id(self, collection: Collection, record_id: str) -> None:
        start_ns = time.perf_counter_ns()
        self._unwrap(await self._engine.execute(S.delete_sql(collection), record_id))
        self.stats.record(OperationType.DELETE, time.perf_counter_ns() - start_ns)


__all__ = ["PostgresRecordStore"]
