"""
Record Adapter Protocol: Uniform CRUD Contract over Every Substrate

Provides the structural subtyping protocol (PEP 544) implemented by the
memory, local, document and relational stores.

Design Principles:
    - Async-first; every call suspends only its caller
    - Upsert is insert-or-replace keyed solely by ``id``, whole record,
      with no version check
    - Delete of an absent id is a silent no-op and never cascades
    - Substrate failures raise ``StorageError``; connect() returns Result
    - No retries inside adapters

Semantics per substrate:

| Operation      | local (SQLite blob)   | document (Redis)      | relational (PostgreSQL) |
|----------------|-----------------------|-----------------------|-------------------------|
| fetch_all      | whole blob            | every indexed doc     | newest ``fetch_limit``  |
| fetch_filtered | scan of blob          | key or index Set      | ``WHERE col = $1``      |
| upsert         | rewrite blob          | MULTI hash write      | ON CONFLICT DO UPDATE   |
| delete_by_id   | rewrite blob          | MULTI key delete      | DELETE                  |
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ecclesia.core.entities import Collection
from ecclesia.core.errors import StorageError
from ecclesia.core.types import Result
from ecclesia.storage.config import BackendKind


# =============================================================================
# OPERATION TYPES
# =============================================================================
class OperationType(Enum):
    """Adapter operation types for logging and metrics."""
    FETCH_ALL = "fetch_all"
    FETCH_FILTERED = "fetch_filtered"
    UPSERT = "upsert"
    DELETE = "delete"


# =============================================================================
# PREDICATE
# =============================================================================
@dataclass(frozen=True, slots=True)
class FieldEquals:
    """
    Equality predicate on one entity attribute.

    ``field`` is the snake_case attribute name; adapters translate it to
    their own storage naming.
    """
    field: str
    value: Any

    def matches(self, entity: Any) -> bool:
        return getattr(entity, self.field, None) == self.value


# =============================================================================
# ADAPTER STATISTICS
# =============================================================================
@dataclass(slots=True)
class AdapterStats:
    """
    Per-operation call counters and latency sums.

    Successful calls are counted per operation; failures only bump ``errors``.
    """
    calls: dict[OperationType, int] = field(
        default_factory=lambda: {op: 0 for op in OperationType}
    )
    latency_sum_ns: dict[OperationType, int] = field(
        default_factory=lambda: {op: 0 for op in OperationType}
    )
    errors: int = 0

    def record(self, operation: OperationType, latency_ns: int = 0) -> None:
        self.calls[operation] += 1
        self.latency_sum_ns[operation] += latency_ns

    def count(self, operation: OperationType) -> int:
        return self.calls[operation]

    def avg_latency_ms(self, operation: OperationType) -> float:
        if self.calls[operation] == 0:
            return 0.0
        return (self.latency_sum_ns[operation] / self.calls[operation]) / 1_000_000


# =============================================================================
# RECORD ADAPTER PROTOCOL
# =============================================================================
@runtime_checkable
class RecordAdapter(Protocol):
    """
    Uniform CRUD contract over one storage substrate.

    Exactly one adapter is active per process, selected from
    ``StorageConfig.backend`` at startup.
    """

    kind: BackendKind
    stats: AdapterStats

    @abstractmethod
    async def connect(self) -> Result[None, StorageError]:
        """Open connections and prepare storage structures."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        ...

    @abstractmethod
    async def fetch_all(self, collection: Collection) -> list[Any]:
        """
        Every entity of ``collection`` (relational: the newest rows up to
        the configured cap).

        Raises:
            StorageError: Substrate unreachable or payload corrupt.
        """
        ...

    @abstractmethod
    async def fetch_filtered(
        self,
        collection: Collection,
        predicate: FieldEquals,
    ) -> list[Any]:
        """Entities of ``collection`` whose attribute equals the predicate value."""
        ...

    @abstractmethod
    async def upsert(self, collection: Collection, entity: Any) -> None:
        """Insert or wholly replace the record with ``entity.id``."""
        ...

    @abstractmethod
    async def delete_by_id(self, collection: Collection, record_id: str) -> None:
        """Remove the record with ``record_id``; no-op when absent."""
        ...


__all__ = [
    "OperationType",
    "FieldEquals",
    "AdapterStats",
    "RecordAdapter",
]
