"""
In-Memory Record Store: Development and Testing Implementation

Full ``RecordAdapter`` compliance without external services, so the cache
manager, seeding and session gate can run against it unchanged.

Design Principles:
    - Records are kept in their CAMEL storage form, so every read and
      write goes through the entity mapper exactly like the real stores
    - Mutations are serialized via an asyncio lock
    - Optional latency simulation and an availability switch for
      exercising slow or failing substrates

Performance Characteristics:
    - fetch_all/fetch_filtered: O(n) in the collection size
    - upsert/delete_by_id: O(1) average case
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

from ecclesia.core.entities import Collection
from ecclesia.core.errors import StorageError
from ecclesia.core.types import Ok, Result
from ecclesia.storage.config import BackendKind
from ecclesia.storage.mapper import FieldNaming, from_storage, to_storage
from ecclesia.storage.protocols import AdapterStats, FieldEquals, OperationType


class MemoryRecordStore:
    """
    Dict-backed record store.

    Thread Safety:
        All mutations are protected by asyncio.Lock for
        concurrent access safety within async context.

    Example:
        store = MemoryRecordStore()
        await store.upsert(Collection.SECTORS, Sector(id="SEDE", name="Sede"))
        sectors = await store.fetch_all(Collection.SECTORS)
    """

    __slots__ = ("kind", "stats", "_data", "_lock", "_latency_s", "_available", "_connected")

    def __init__(self, simulated_latency_ms: int = 0) -> None:
        self.kind = BackendKind.MEMORY
        self.stats = AdapterStats()
        self._data: Dict[Collection, Dict[str, dict[str, Any]]] = {c: {} for c in Collection}
        self._lock = asyncio.Lock()
        self._latency_s = simulated_latency_ms / 1000
        self._available = True
        self._connected = True

    # -------------------------------------------------------------------------
    # TEST HOOKS
    # -------------------------------------------------------------------------

    def set_available(self, available: bool) -> None:
        """Make every subsequent operation fail as unreachable (or recover)."""
        self._available = available

    def raw(self, collection: Collection) -> list[dict[str, Any]]:
        return [dict(record) for record in self._data[collection].values()]

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        self._connected = True
        return Ok(None)

    async def close(self) -> None:
        self._connected = False

    # -------------------------------------------------------------------------
    # RECORD OPERATIONS
    # -------------------------------------------------------------------------

    async def _enter(self, operation: OperationType) -> int:
        start_ns = time.perf_counter_ns()
        if self._latency_s:
            await asyncio.sleep(self._latency_s)
        if not self._connected:
            self.stats.errors += 1
            raise StorageError.not_connected("memory")
        if not self._available:
            self.stats.errors += 1
            raise StorageError.unavailable(
                "memory", operation.value, ConnectionError("store marked unavailable")
            )
        return start_ns

    async def fetch_all(self, collection: Collection) -> list[Any]:
        start_ns = await self._enter(OperationType.FETCH_ALL)
        entity_type = collection.entity_type
        result = [
            from_storage(entity_type, record, FieldNaming.CAMEL)
            for record in self._data[collection].values()
        ]
        self.stats.record(OperationType.FETCH_ALL, time.perf_counter_ns() - start_ns)
        return result

    async def fetch_filtered(
        self,
        collection: Collection,
        predicate: FieldEquals,
    ) -> list[Any]:
        start_ns = await self._enter(OperationType.FETCH_FILTERED)
        entity_type = collection.entity_type
        result = [
            entity
            for entity in (
                from_storage(entity_type, record, FieldNaming.CAMEL)
                for record in self._data[collection].values()
            )
            if predicate.matches(entity)
        ]
        self.stats.record(OperationType.FETCH_FILTERED, time.perf_counter_ns() - start_ns)
        return result

    async def upsert(self, collection: Collection, entity: Any) -> None:
        start_ns = await self._enter(OperationType.UPSERT)
        async with self._lock:
            self._data[collection][entity.id] = to_storage(entity, FieldNaming.CAMEL)
        self.stats.record(OperationType.UPSERT, time.perf_counter_ns() - start_ns)

    async def delete_by_id(self, collection: Collection, record_id: str) -> None:
        start_ns = await self._enter(OperationType.DELETE)
        async with self._lock:
            self._data[collection].pop(record_id, None)
        self.stats.record(OperationType.DELETE, time.perf_counter_ns() - start_ns)

    def count(self, collection: Optional[Collection] = None) -> int:
        if collection is not None:
            return len(self._data[collection])
        return sum(len(bucket) for bucket in self._data.values())


__all__ = ["MemoryRecordStore"]
