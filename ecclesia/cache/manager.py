"""
Cache Manager: Per-Collection Snapshots over One Record Adapter

Provides latency-hiding reads and optimistic writes:
- One snapshot per collection, fresh for ``ttl_seconds`` after a fetch
- Concurrent misses on a collection share a single adapter fetch
- Writes mutate the snapshot first, then reach the adapter

Entry lifecycle:

    EMPTY --read--> LOADING --ok--> FRESH --ttl--> STALE --read--> LOADING
      ^                | fail (previous state kept)                   |
      +--invalidate()--+-----------------------------------------------+

Write policy:
    Validation runs before anything else; a rejected entity leaves the
    cache and the adapter untouched. After validation the snapshot is
    replaced by a copy containing the new entity, then the adapter is
    called. If the adapter fails the error propagates and the optimistic
    snapshot is kept until the next forced refresh or invalidation.
    Writes and deletes made while a fetch is in flight are laid over its
    result, so a fetch that started earlier cannot hide them.

Design:
    The manager is an explicit object injected into callers; there is no
    module-level cache. Snapshots are immutable tuples replaced whole on
    every mutation, so a list handed to a caller never changes under it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ecclesia.core.constants import DEFAULT_CACHE_TTL_SECONDS, ROOT_SECTOR_ID
from ecclesia.core.entities import Collection, missing_fields
from ecclesia.core.errors import ValidationError
from ecclesia.core.types import MonotonicClock
from ecclesia.storage.protocols import RecordAdapter

logger = logging.getLogger(__name__)

# Marks a record deleted while a fetch was in flight.
_REMOVED = object()


def _overlay(fetched: list[Any], pending: Dict[str, Any]) -> list[Any]:
    """``fetched`` with later writes replaced or appended and deletes dropped."""
    if not pending:
        return list(fetched)
    merged = []
    seen = set()
    for item in fetched:
        seen.add(item.id)
        change = pending.get(item.id, item)
        if change is not _REMOVED:
            merged.append(change)
    for record_id, change in pending.items():
        if record_id not in seen and change is not _REMOVED:
            merged.append(change)
    return merged


# =============================================================================
# CACHE ENTRY
# =============================================================================
class CacheState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(slots=True)
class CacheEntry:
    """
    Snapshot of one collection.

    ``last_fetch`` is a monotonic clock reading, None until the first
    successful fetch. ``pending`` is only set while a fetch is in flight:
    it holds the writes and deletes made since the fetch started, keyed by
    record id, and is laid over the fetched list before it becomes the
    snapshot.
    """
    snapshot: tuple[Any, ...] = ()
    last_fetch: Optional[float] = None
    loading: bool = False
    pending: Optional[Dict[str, Any]] = None

    def record(self, record_id: str, entity: Any) -> None:
        if self.pending is not None:
            self.pending[record_id] = entity

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return self.last_fetch is not None and (now - self.last_fetch) < ttl_seconds

    def state(self, now: float, ttl_seconds: float) -> CacheState:
        if self.loading:
            return CacheState.LOADING
        if self.last_fetch is None:
            return CacheState.EMPTY
        if self.is_fresh(now, ttl_seconds):
            return CacheState.FRESH
        return CacheState.STALE


@dataclass
class CacheStats:
    """Cache performance statistics."""
    hits: int = 0
    misses: int = 0
    fetches: int = 0
    fetch_failures: int = 0
    writes: int = 0
    deletes: int = 0
    write_failures: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


# =============================================================================
# CACHE MANAGER
# =============================================================================
class CacheManager:
    """
    Read-through, write-optimistic cache in front of a record adapter.

    Usage:
        cache = CacheManager(adapter, ttl_seconds=300)
        members = await cache.read(Collection.MEMBERS)
        await cache.write(Collection.MEMBERS, member)
        await cache.delete(Collection.MEMBERS, member.id)
        cache.invalidate()
    """

    __slots__ = (
        "_adapter",
        "_ttl_seconds",
        "_clock",
        "_entries",
        "_locks",
        "_stats",
        "_generation",
        "_closed",
    )

    def __init__(
        self,
        adapter: RecordAdapter,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: MonotonicClock = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
        self._adapter = adapter
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Collection, CacheEntry] = {c: CacheEntry() for c in Collection}
        self._locks: Dict[Collection, asyncio.Lock] = {}
        self._stats = CacheStats()
        # Bumped by invalidate(); fetches started under an older
        # generation do not repopulate the cache.
        self._generation = 0
        self._closed = False

    @property
    def adapter(self) -> RecordAdapter:
        return self._adapter

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def state(self, collection: Collection) -> CacheState:
        return self._entries[collection].state(self._clock(), self._ttl_seconds)

    def snapshot(self, collection: Collection) -> list[Any]:
        """Current snapshot without any freshness check or adapter call."""
        return list(self._entries[collection].snapshot)

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("CacheManager is closed")

    def _lock(self, collection: Collection) -> asyncio.Lock:
        lock = self._locks.get(collection)
        if lock is None:
            lock = self._locks[collection] = asyncio.Lock()
        return lock

    # -------------------------------------------------------------------------
    # READ PATH
    # -------------------------------------------------------------------------

    async def read(self, collection: Collection, force_refresh: bool = False) -> list[Any]:
        """
        Entities of ``collection``.

        A fresh snapshot is returned without touching the adapter unless
        ``force_refresh`` is set. Otherwise one fetch replaces the snapshot
        and resets its timestamp.

        Raises:
            StorageError: The fetch failed; the entry keeps its prior state.
        """
        self._check_open()
        entry = self._entries[collection]

        if not force_refresh and entry.is_fresh(self._clock(), self._ttl_seconds):
            self._stats.hits += 1
            return list(entry.snapshot)

        async with self._lock(collection):
            entry = self._entries[collection]
            if not force_refresh and entry.is_fresh(self._clock(), self._ttl_seconds):
                # Another reader loaded it while we waited.
                self._stats.hits += 1
                return list(entry.snapshot)

            self._stats.misses += 1
            generation = self._generation
            entry.loading = True
            entry.pending = pending = {}
            try:
                fetched = await self._adapter.fetch_all(collection)
            except Exception:
                self._stats.fetch_failures += 1
                logger.warning(
                    "Collection fetch failed",
                    extra={"collection": collection.value},
                    exc_info=True,
                )
                raise
            finally:
                entry.loading = False
                entry.pending = None

            self._stats.fetches += 1
            # The fetch may predate writes that have since reached the adapter.
            merged = _overlay(fetched, pending)
            if generation == self._generation:
                entry.snapshot = tuple(merged)
                entry.last_fetch = self._clock()
            logger.debug(
                "Collection loaded",
                extra={
                    "collection": collection.value,
                    "count": len(merged),
                    "overlaid": len(pending),
                },
            )
            return merged

    # -------------------------------------------------------------------------
    # WRITE PATH
    # -------------------------------------------------------------------------

    @staticmethod
    def validate(collection: Collection, entity: Any) -> None:
        """
        Raises:
            TypeError: ``entity`` does not belong to ``collection``.
            ValidationError: Required fields are missing or blank.
        """
        entity_type = collection.entity_type
        if not isinstance(entity, entity_type):
            raise TypeError(
                f"{collection.value} holds {entity_type.__name__}, got {type(entity).__name__}"
            )
        missing = missing_fields(entity)
        if missing:
            raise ValidationError.missing_fields(entity_type.__name__, missing)

    async def write(self, collection: Collection, entity: Any) -> Any:
        """
        Insert or replace ``entity`` optimistically, then persist it.

        Raises:
            ValidationError: Before any cache or adapter effect.
            StorageError: From the adapter; the cache is not rolled back.
        """
        self._check_open()
        self.validate(collection, entity)

        entry = self._entries[collection]
        items = list(entry.snapshot)
        for index, existing in enumerate(items):
            if existing.id == entity.id:
                items[index] = entity
                break
        else:
            items.append(entity)
        entry.snapshot = tuple(items)
        entry.record(entity.id, entity)
        self._stats.writes += 1

        try:
            await self._adapter.upsert(collection, entity)
        except Exception:
            self._stats.write_failures += 1
            logger.warning(
                "Upsert failed; optimistic cache entry kept",
                extra={"collection": collection.value, "record_id": entity.id},
            )
            raise
        return entity

    async def delete(self, collection: Collection, record_id: str) -> None:
        """
        Remove ``record_id`` optimistically, then from the substrate.

        Deleting an absent id is a no-op at both levels. The root sector
        can never be deleted.

        Raises:
            ValidationError: ``record_id`` is the root sector.
            StorageError: From the adapter; the cache is not rolled back.
        """
        self._check_open()
        if collection is Collection.SECTORS and record_id == ROOT_SECTOR_ID:
            raise ValidationError.protected_record(collection.value, record_id)

        entry = self._entries[collection]
        entry.snapshot = tuple(item for item in entry.snapshot if item.id != record_id)
        entry.record(record_id, _REMOVED)
        self._stats.deletes += 1

        try:
            await self._adapter.delete_by_id(collection, record_id)
        except Exception:
            self._stats.write_failures += 1
            logger.warning(
                "Delete failed; optimistic cache removal kept",
                extra={"collection": collection.value, "record_id": record_id},
            )
            raise

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    def invalidate(self) -> None:
        """Drop every snapshot; the next read of any collection refetches."""
        self._generation += 1
        for entry in self._entries.values():
            entry.snapshot = ()
            entry.last_fetch = None
        self._stats.invalidations += 1
        logger.debug("Cache invalidated", extra={"generation": self._generation})

    async def close(self) -> None:
        """Drop all state; further use raises RuntimeError."""
        if self._closed:
            return
        self.invalidate()
        self._closed = True


__all__ = ["CacheManager", "CacheEntry", "CacheState", "CacheStats"]
