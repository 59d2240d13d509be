"""
In-process stand-ins for external clients.

FakeRedis mimics the subset of ``redis.asyncio.Redis`` the document store
uses (with ``decode_responses=True``); FakePool mimics ``asyncpg.Pool``.
Both record what was sent so tests can assert on it.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional, Set, Tuple, TypeVar

from redis.exceptions import ConnectionError as RedisConnectionError

T = TypeVar("T")


def run(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# REDIS
# =============================================================================
class FakePipeline:
    def __init__(self, client: FakeRedis, transaction: bool) -> None:
        self._client = client
        self.transaction = transaction
        self._ops: List[Tuple[str, tuple]] = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        self._ops.clear()
        return False

    def _queue(self, name: str, *args: Any) -> FakePipeline:
        self._ops.append((name, args))
        return self

    def hget(self, key: str, field: str) -> FakePipeline:
        return self._queue("hget", key, field)

    def hset(self, key: str, mapping: Dict[str, str]) -> FakePipeline:
        return self._queue("hset", key, mapping)

    def hsetnx(self, key: str, field: str, value: str) -> FakePipeline:
        return self._queue("hsetnx", key, field, value)

    def sadd(self, key: str, *members: str) -> FakePipeline:
        return self._queue("sadd", key, *members)

    def srem(self, key: str, *members: str) -> FakePipeline:
        return self._queue("srem", key, *members)

    def delete(self, *keys: str) -> FakePipeline:
        return self._queue("delete", *keys)

    async def execute(self) -> List[Any]:
        self._client._check()
        ops, self._ops = self._ops, []
        self._client.pipelines.append((self.transaction, [name for name, _ in ops]))
        return [getattr(self._client, f"_{name}")(*args) for name, args in ops]


class FakeRedis:
    def __init__(self) -> None:
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.sets: Dict[str, Set[str]] = {}
        self.pipelines: List[Tuple[bool, List[str]]] = []
        self.down = False
        self.closed = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    # Direct commands

    async def ping(self) -> bool:
        self._check()
        return True

    async def hget(self, key: str, field: str) -> Optional[str]:
        self._check()
        return self._hget(key, field)

    async def hgetall(self, key: str) -> Dict[str, str]:
        self._check()
        return dict(self.hashes.get(key, {}))

    async def smembers(self, key: str) -> Set[str]:
        self._check()
        return set(self.sets.get(key, set()))

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction)

    async def aclose(self) -> None:
        self.closed = True

    # Command bodies shared with the pipeline

    def _hget(self, key: str, field: str) -> Optional[str]:
        return self.hashes.get(key, {}).get(field)

    def _hset(self, key: str, mapping: Dict[str, str]) -> int:
        bucket = self.hashes.setdefault(key, {})
        added = sum(1 for field in mapping if field not in bucket)
        bucket.update(mapping)
        return added

    def _hsetnx(self, key: str, field: str, value: str) -> int:
        bucket = self.hashes.setdefault(key, {})
        if field in bucket:
            return 0
        bucket[field] = value
        return 1

    def _sadd(self, key: str, *members: str) -> int:
        bucket = self.sets.setdefault(key, set())
        added = len(set(members) - bucket)
        bucket.update(members)
        return added

    def _srem(self, key: str, *members: str) -> int:
        bucket = self.sets.get(key, set())
        removed = len(bucket & set(members))
        bucket.difference_update(members)
        return removed

    def _delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.hashes.pop(key, None) is not None:
                removed += 1
        return removed


# =============================================================================
# ASYNCPG
# =============================================================================
class FakeConnection:
    def __init__(self, pool: FakePool) -> None:
        self._pool = pool

    async def execute(self, query: str, *args: Any) -> str:
        self._pool._check()
        self._pool.executed.append((query, args))
        return "OK"

    async def fetch(self, query: str, *args: Any) -> List[Dict[str, Any]]:
        self._pool._check()
        self._pool.fetched.append((query, args))
        rows = list(self._pool.rows)
        if "LIMIT $1" in query:
            rows = rows[: args[0]]
        return rows


class FakePool:
    """
    Records every statement; ``fetch`` answers with ``rows``.

    Set ``error`` to make every statement raise it.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None) -> None:
        self.rows: List[Dict[str, Any]] = rows or []
        self.executed: List[Tuple[str, tuple]] = []
        self.fetched: List[Tuple[str, tuple]] = []
        self.error: Optional[Exception] = None
        self.closed = False

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeConnection]:
        yield FakeConnection(self)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# S3
# =============================================================================
class FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def __aenter__(self) -> FakeBody:
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False

    async def read(self) -> bytes:
        return self._data


class FakeS3Client:
    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}

    async def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict:
        self.objects[(Bucket, Key)] = (Body, ContentType)
        return {}

    async def get_object(self, Bucket: str, Key: str) -> dict:
        data, _ = self.objects[(Bucket, Key)]
        return {"Body": FakeBody(data)}
