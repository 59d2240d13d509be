"""
Local Record Store: SQLite Key/Value Blobs

Single-process durable substrate. Each collection is one JSON array of
camelCase records stored under the key ``ecclesia_<collection>`` in a
``kv_store`` table, read and rewritten wholesale on every operation. This
is the layout earlier releases kept in browser local storage, so exported
blobs can be loaded as-is.

Performance Characteristics:
- Every operation: O(n) in the collection size (full blob decode/encode)
- An artificial delay precedes every operation to keep latency
  behaviour comparable with the remote substrates

Storage Format:
- value: UTF-8 JSON, lz4-framed when larger than the threshold
- compressed: 1 when value is lz4-framed, else 0

Thread Safety:
- One connection, operations serialized via an asyncio lock
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from typing import Any, Optional

import lz4.frame

from ecclesia.core.entities import Collection
from ecclesia.core.errors import StorageError
from ecclesia.core.types import Err, Ok, Result, utc_now_iso
from ecclesia.storage.config import BackendKind, LocalConfig
from ecclesia.storage.mapper import FieldNaming, from_storage, to_storage
from ecclesia.storage.protocols import AdapterStats, FieldEquals, OperationType

logger = logging.getLogger(__name__)

BACKEND = "local"


class LocalRecordStore:
    """
    SQLite-backed record store holding one blob per collection.

    Usage:
        store = LocalRecordStore(LocalConfig(data_dir=Path("./data")))
        result = await store.connect()
        await store.upsert(Collection.MEMBERS, member)
        members = await store.fetch_all(Collection.MEMBERS)
    """

    __slots__ = ("kind", "stats", "_config", "_conn", "_lock")

    # SQLite PRAGMA settings
    PRAGMAS = [
        "PRAGMA journal_mode = WAL",      # Write-Ahead Logging
        "PRAGMA synchronous = NORMAL",    # Safe with WAL
        "PRAGMA temp_store = MEMORY",
        "PRAGMA busy_timeout = 5000",     # 5s busy retry
    ]

    SCHEMA_DDL = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        compressed INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL
    )
    """

    def __init__(self, config: LocalConfig) -> None:
        self.kind = BackendKind.LOCAL
        self.stats = AdapterStats()
        self._config = config
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        """Open the SQLite file, apply PRAGMAs and create the table."""
        if self._conn is not None:
            return Ok(None)
        try:
            self._config.data_dir.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self._config.db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit; each statement is atomic
            )
            for pragma in self.PRAGMAS:
                conn.execute(pragma)
            conn.execute(f"PRAGMA cache_size = -{self._config.cache_size_kb}")
            conn.execute(self.SCHEMA_DDL)
            self._conn = conn

            logger.info(
                "Local store initialized",
                extra={"db_path": str(self._config.db_path)},
            )
            return Ok(None)
        except (sqlite3.Error, OSError) as e:
            logger.error("Local store initialization failed: %s", e)
            return Err(StorageError.unavailable(BACKEND, "connect", e))

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Local store closed")

    # -------------------------------------------------------------------------
    # BLOB CODEC
    # -------------------------------------------------------------------------

    def _key(self, collection: Collection) -> str:
        return f"{self._config.key_prefix}{collection.value}"

    def _encode(self, records: list[dict[str, Any]]) -> tuple[bytes, int]:
        payload = json.dumps(records, ensure_ascii=False).encode("utf-8")
        if (
            self._config.compression == "lz4"
            and len(payload) >= self._config.compression_threshold_bytes
        ):
            return lz4.frame.compress(payload), 1
        return payload, 0

    def _decode(self, key: str, value: bytes, compressed: int) -> list[dict[str, Any]]:
        try:
            raw = lz4.frame.decompress(value) if compressed else value
            if isinstance(raw, str):
                records = json.loads(raw)
            else:
                records = json.loads(bytes(raw).decode("utf-8"))
        except (RuntimeError, ValueError) as e:
            raise StorageError.corruption("collection blob is not valid JSON", key=key, cause=e)
        if not isinstance(records, list):
            raise StorageError.corruption("collection blob is not a JSON array", key=key)
        return records

    def _read_records(self, collection: Collection) -> list[dict[str, Any]]:
        if self._conn is None:
            raise StorageError.not_connected(BACKEND)
        key = self._key(collection)
        try:
            row = self._conn.execute(
                "SELECT value, compressed FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError.unavailable(BACKEND, "read", e)
        if row is None:
            return []
        return self._decode(key, row[0], row[1])

    def _write_records(self, collection: Collection, records: list[dict[str, Any]]) -> None:
        if self._conn is None:
            raise StorageError.not_connected(BACKEND)
        value, compressed = self._encode(records)
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, compressed, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (self._key(collection), value, compressed, utc_now_iso()),
            )
        except sqlite3.Error as e:
            raise StorageError.unavailable(BACKEND, "write", e)

    async def _delay(self) -> None:
        if self._config.simulated_latency_ms:
            await asyncio.sleep(self._config.simulated_latency_ms / 1000)

    def _fail(self) -> None:
        self.stats.errors += 1

    # -------------------------------------------------------------------------
    # RECORD OPERATIONS
    # -------------------------------------------------------------------------

    async def fetch_all(self, collection: Collection) -> list[Any]:
        start_ns = time.perf_counter_ns()
        await self._delay()
        async with self._lock:
            try:
                records = self._read_records(collection)
            except StorageError:
                self._fail()
                raise
        entity_type = collection.entity_type
        result = [from_storage(entity_type, r, FieldNaming.CAMEL) for r in records]
        self.stats.record(OperationType.FETCH_ALL, time.perf_counter_ns() - start_ns)
        return result

    async def fetch_filtered(
        self,
        collection: Collection,
        predicate: FieldEquals,
    ) -> list[Any]:
        start_ns = time.perf_counter_ns()
        await self._delay()
        async with self._lock:
            try:
                records = self._read_records(collection)
            except StorageError:
                self._fail()
                raise
        entity_type = collection.entity_type
        result = [
            entity
            for entity in (from_storage(entity_type, r, FieldNaming.CAMEL) for r in records)
            if predicate.matches(entity)
        ]
        self.stats.record(OperationType.FETCH_FILTERED, time.perf_counter_ns() - start_ns)
        return result

    async def upsert(self, collection: Collection, entity: Any) -> None:
        start_ns = time.perf_counter_ns()
        await self._delay()
        record = to_storage(entity, FieldNaming.CAMEL)
        async with self._lock:
            try:
                records = self._read_records(collection)
                for index, existing in enumerate(records):
                    if isinstance(existing, dict) and existing.get("id") == entity.id:
                        records[index] = record
                        break
                else:
                    records.append(record)
                self._write_records(collection, records)
            except StorageError:
                self._fail()
                raise
        self.stats.record(OperationType.UPSERT, time.perf_counter_ns() - start_ns)

    async def delete_by_id(self, collection: Collection, record_id: str) -> None:
        start_ns = time.perf_counter_ns()
        await self._delay()
        async with self._lock:
            try:
                records = self._read_records(collection)
                kept = [
                    r for r in records
                    if not (isinstance(r, dict) and r.get("id") == record_id)
                ]
                if len(kept) != len(records):
                    self._write_records(collection, kept)
            except StorageError:
                self._fail()
                raise
        self.stats.record(OperationType.DELETE, time.perf_counter_ns() - start_ns)

    # -------------------------------------------------------------------------
    # RAW ACCESS
    # -------------------------------------------------------------------------

    async def import_blob(self, collection: Collection, records: list[dict[str, Any]]) -> None:
        """Replace a collection with raw records, e.g. an exported legacy blob."""
        async with self._lock:
            self._write_records(collection, list(records))

    async def export_blob(self, collection: Collection) -> list[dict[str, Any]]:
        async with self._lock:
            return self._read_records(collection)


__all__ = ["LocalRecordStore"]
