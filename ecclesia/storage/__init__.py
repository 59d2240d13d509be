"""
Storage Module: Record Adapters over Interchangeable Substrates
===============================================================

Provides:
- The ``RecordAdapter`` protocol and equality predicate
- The entity mapper shared by every substrate
- Memory, local (SQLite), document (Redis) and relational (PostgreSQL)
  adapters
- ``create_adapter`` for startup-time substrate selection

Design Principles:
-----------------
1. **Backend Agnostic**: Same contract for every substrate
2. **Factory Pattern**: Substrate chosen once from ``StorageConfig.backend``
3. **Lazy Loading**: Driver modules imported only for the chosen substrate
4. **No Fallback**: An unreachable substrate is reported, never swapped

Example:
    >>> adapter = create_adapter(StorageConfig.from_env())
    >>> result = await adapter.connect()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ecclesia.storage.protocols import (
    AdapterStats,
    FieldEquals,
    OperationType,
    RecordAdapter,
)
from ecclesia.storage.mapper import (
    FieldNaming,
    from_storage,
    to_storage,
)
from ecclesia.storage.backends import MemoryRecordStore
from ecclesia.storage.config import (
    BackendKind,
    LocalConfig,
    PostgresConfig,
    RedisConfig,
    RedisMode,
    S3Config,
    StorageConfig,
)

if TYPE_CHECKING:
    from ecclesia.storage.attachments import AttachmentStore


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_adapter(config: StorageConfig) -> RecordAdapter:
    """
    Build the record adapter selected by ``config.backend``.

    The adapter is returned unconnected; call ``connect()`` before use.
    """
    if config.backend is BackendKind.MEMORY:
        return MemoryRecordStore()

    if config.backend is BackendKind.LOCAL:
        from ecclesia.storage.local_store import LocalRecordStore
        return LocalRecordStore(config.local)

    if config.backend is BackendKind.DOCUMENT:
        from ecclesia.storage.redis_store import RedisDocumentStore
        assert config.redis is not None
        return RedisDocumentStore(config.redis)

    if config.backend is BackendKind.RELATIONAL:
        from ecclesia.storage.relational.store import PostgresRecordStore
        assert config.postgres is not None
        return PostgresRecordStore(config.postgres)

    raise ValueError(f"Unsupported backend: {config.backend}")


def create_attachment_store(config: StorageConfig) -> "AttachmentStore":
    """Attachment store for ``config.s3`` (inline references when unset)."""
    from ecclesia.storage.attachments import AttachmentStore
    return AttachmentStore(config.s3)


__all__ = [
    # Protocol
    "RecordAdapter",
    "FieldEquals",
    "OperationType",
    "AdapterStats",
    # Mapper
    "FieldNaming",
    "to_storage",
    "from_storage",
    # Backends
    "MemoryRecordStore",
    # Config
    "BackendKind",
    "RedisMode",
    "LocalConfig",
    "RedisConfig",
    "PostgresConfig",
    "S3Config",
    "StorageConfig",
    # Factories
    "create_adapter",
    "create_attachment_store",
]
