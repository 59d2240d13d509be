"""
Redis Document Store
====================

Remote document-oriented substrate built on ``redis.asyncio``.

Memory Model:
-------------
Each record is a Redis Hash at ``{prefix}:{collection}:{id}`` with fields:
- 'd': document (camelCase JSON, same layout as the local blobs)
- 'c': first-write timestamp (ISO, set once)
- 'u': last-write timestamp (ISO)
- 'i': indexed attribute values (JSON)

Each collection keeps an id index Set at ``{prefix}:{collection}:ids``
so full reads never need SCAN. Records are also indexed by ``email``,
``member_id`` and ``sector`` in Sets at
``{prefix}:{collection}:by:{field}:{value}``; the hash field 'i' keeps
the indexed values last written so an update or delete can unlink them.
Blank and null values are not indexed; a record without 'i' is reachable
by id and by full reads only.

Algorithmic Complexity:
-----------------------
| Operation       | Time  | Notes                                   |
|-----------------|-------|-----------------------------------------|
| fetch_all       | O(n)  | SMEMBERS + pipelined HGET               |
| fetch_filtered  | O(k)  | id: HGET; indexed field: SMEMBERS + HGET|
| upsert          | O(1)  | HGET 'i', then MULTI: HSET + SADD/SREM  |
| delete_by_id    | O(1)  | HGET 'i', then MULTI: DEL + SREM        |

``k`` is the number of matching records. Filters on any other attribute
read the whole collection and match in process (O(n)).

Failure Model:
--------------
Connection and timeout failures raise ``StorageError`` with code
STORAGE_UNAVAILABLE; no partial result is ever returned.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ecclesia.core.entities import Collection
from ecclesia.core.errors import StorageError
from ecclesia.core.types import Err, Ok, Result, utc_now_iso
from ecclesia.storage.config import BackendKind, RedisConfig, RedisMode
from ecclesia.storage.mapper import FieldNaming, from_storage, to_storage
from ecclesia.storage.protocols import AdapterStats, FieldEquals, OperationType

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

BACKEND = "redis"

INDEXED_FIELDS: tuple[str, ...] = ("email", "member_id", "sector")


def _index_values(entity: Any) -> Dict[str, str]:
    values = {}
    for name in INDEXED_FIELDS:
        value = getattr(entity, name, None)
        if value is not None and value != "":
            values[name] = str(value)
    return values


class RedisDocumentStore:
    """
    Redis store implementing the record adapter contract.

    Example:
        >>> store = RedisDocumentStore(RedisConfig(host="redis.example.com"))
        >>> await store.connect()
        >>> await store.upsert(Collection.MEMBERS, member)
        >>> await store.close()

    A pre-built client may be injected (tests use an in-process fake).
    """

    __slots__ = ("kind", "stats", "_config", "_client", "_connected")

    def __init__(
        self,
        config: RedisConfig,
        client: Optional["aioredis.Redis"] = None,
    ) -> None:
        self.kind = BackendKind.DOCUMENT
        self.stats = AdapterStats()
        self._config = config
        self._client = client
        self._connected = False

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        """
        Create the client (unless injected) and verify it with PING.
        """
        try:
            if self._client is None:
                import redis.asyncio as aioredis

                kwargs = self._config.get_connection_kwargs()
                if self._config.mode == RedisMode.SENTINEL:
                    from redis.asyncio.sentinel import Sentinel

                    sentinel = Sentinel(
                        list(self._config.sentinel_hosts),
                        socket_timeout=self._config.socket_timeout_ms / 1000,
                    )
                    kwargs.pop("host")
                    kwargs.pop("port")
                    self._client = sentinel.master_for(
                        self._config.service_name,
                        redis_class=aioredis.Redis,
                        **kwargs,
                    )
                else:
                    self._client = aioredis.Redis(**kwargs)

            await self._client.ping()
            self._connected = True
            logger.info(
                "Redis store connected",
                extra={"host": self._config.host, "port": self._config.port},
            )
            return Ok(None)

        except (RedisError, OSError, asyncio.TimeoutError) as e:
            self.stats.errors += 1
            return Err(StorageError.unavailable(BACKEND, "connect", e))

    async def close(self) -> None:
        """
        Close the client. Safe to call multiple times.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._connected = False

    # -------------------------------------------------------------------------
    # KEYS
    # -------------------------------------------------------------------------

    def _record_key(self, collection: Collection, record_id: str) -> str:
        return f"{self._config.key_prefix}:{collection.value}:{record_id}"

    def _index_key(self, collection: Collection) -> str:
        return f"{self._config.key_prefix}:{collection.value}:ids"

    def _field_key(self, collection: Collection, field: str, value: str) -> str:
        return f"{self._config.key_prefix}:{collection.value}:by:{field}:{value}"

    async def _indexed_values(self, client: "aioredis.Redis", key: str) -> Dict[str, str]:
        raw = await client.hget(key, "i")
        if not raw:
            return {}
        try:
            values = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring undecodable index values", extra={"key": key})
            return {}
        return values if isinstance(values, dict) else {}

    def _require_client(self) -> "aioredis.Redis":
        if not self._connected or self._client is None:
            raise StorageError.not_connected(BACKEND)
        return self._client

    def _translate(self, operation: OperationType, error: Exception) -> StorageError:
        self.stats.errors += 1
        if isinstance(error, (RedisConnectionError, RedisTimeoutError, OSError, asyncio.TimeoutError)):
            return StorageError.unavailable(BACKEND, operation.value, error)
        return StorageError.backend_failure(BACKEND, operation.value, error)

    def _decode(self, entity_type: type, key: str, document: Optional[str]) -> Optional[Any]:
        if document is None:
            return None
        try:
            record = json.loads(document)
        except ValueError:
            logger.warning("Skipping undecodable document", extra={"key": key})
            return None
        return from_storage(entity_type, record, FieldNaming.CAMEL)

    # -------------------------------------------------------------------------
    # RECORD OPERATIONS
    # -------------------------------------------------------------------------

    async def _load(
        self,
        client: "aioredis.Redis",
        collection: Collection,
        ids: List[str],
    ) -> list[Any]:
        keys = [self._record_key(collection, record_id) for record_id in sorted(ids)]
        documents: List[Optional[str]] = []
        if keys:
            async with client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.hget(key, "d")
                documents = await pipe.execute()

        entity_type = collection.entity_type
        result = []
        for key, document in zip(keys, documents):
            entity = self._decode(entity_type, key, document)
            if entity is not None:
                result.append(entity)
        return result

    async def fetch_all(self, collection: Collection) -> list[Any]:
        client = self._require_client()
        start_ns = time.perf_counter_ns()

        try:
            ids = await client.smembers(self._index_key(collection))
            result = await self._load(client, collection, list(ids))
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._translate(OperationType.FETCH_ALL, e)

        self.stats.record(OperationType.FETCH_ALL, time.perf_counter_ns() - start_ns)
        return result

    async def fetch_filtered(
        self,
        collection: Collection,
        predicate: FieldEquals,
    ) -> list[Any]:
        if predicate.field != "id" and predicate.field not in INDEXED_FIELDS:
            entities = await self.fetch_all(collection)
            self.stats.record(OperationType.FETCH_FILTERED)
            return [entity for entity in entities if predicate.matches(entity)]

        client = self._require_client()
        start_ns = time.perf_counter_ns()
        value = "" if predicate.value is None else str(predicate.value)
        try:
            if predicate.field == "id":
                ids = [value]
            else:
                ids = list(await client.smembers(self._field_key(collection, predicate.field, value)))
            candidates = await self._load(client, collection, ids)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._translate(OperationType.FETCH_FILTERED, e)

        # Index entries can trail a concurrent update; the document decides.
        result = [entity for entity in candidates if predicate.matches(entity)]
        self.stats.record(OperationType.FETCH_FILTERED, time.perf_counter_ns() - start_ns)
        return result

    async def upsert(self, collection: Collection, entity: Any) -> None:
        client = self._require_client()
        start_ns = time.perf_counter_ns()

        document = json.dumps(to_storage(entity, FieldNaming.CAMEL), ensure_ascii=False)
        indexed = _index_values(entity)
        now = utc_now_iso()
        key = self._record_key(collection, entity.id)

        try:
            previous = await self._indexed_values(client, key)
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping={"d": document, "u": now, "i": json.dumps(indexed)})
                pipe.hsetnx(key, "c", now)
                pipe.sadd(self._index_key(collection), entity.id)
                for field, old in previous.items():
                    if indexed.get(field) != old:
                        pipe.srem(self._field_key(collection, field, old), entity.id)
                for field, value in indexed.items():
                    pipe.sadd(self._field_key(collection, field, value), entity.id)
                await pipe.execute()
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._translate(OperationType.UPSERT, e)

        self.stats.record(OperationType.UPSERT, time.perf_counter_ns() - start_ns)

    async def delete_by_id(self, collection: Collection, record_id: str) -> None:
        client = self._require_client()
        start_ns = time.perf_counter_ns()
        key = self._record_key(collection, record_id)

        try:
            previous = await self._indexed_values(client, key)
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.srem(self._index_key(collection), record_id)
                for field, old in previous.items():
                    pipe.srem(self._field_key(collection, field, old), record_id)
                await pipe.execute()
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._translate(OperationType.DELETE, e)

        self.stats.record(OperationType.DELETE, time.perf_counter_ns() - start_ns)

    async def record_timestamps(self, collection: Collection, record_id: str) -> Dict[str, str]:
        """First and last write timestamps of a record (empty when absent)."""
        client = self._require_client()
        try:
            data: Dict[str, str] = await client.hgetall(self._record_key(collection, record_id))
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._translate(OperationType.FETCH_FILTERED, e)
        if not data:
            return {}
        return {"created": data.get("c", ""), "updated": data.get("u", "")}


__all__ = ["RedisDocumentStore"]
