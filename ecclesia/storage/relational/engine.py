"""
Relational Engine: PostgreSQL Connection Management

Provides async connection pooling with:
- Bounded pool (min/max) created once per process
- Query execution returning Result values
- Driver exceptions translated into StorageError

Design:
- Uses asyncpg for async PostgreSQL access
- Connection failures map to STORAGE_UNAVAILABLE, server-side
  rejections to STORAGE_BACKEND_FAILURE
- A pool object may be injected (tests use an in-process fake)

Complexity:
- Connection acquire: O(1) amortized
- Query execution: O(query complexity)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import asyncpg

from ecclesia.core.errors import StorageError
from ecclesia.core.types import Err, Ok, Result
from ecclesia.storage.config import PostgresConfig

logger = logging.getLogger(__name__)

BACKEND = "postgres"

_UNAVAILABLE_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)


@dataclass
class ConnectionStats:
    """Connection pool statistics for observability."""

    total_queries: int = 0
    failed_queries: int = 0
    active_connections: int = 0
    avg_query_time_ns: float = 0.0


@dataclass
class QueryResult:
    """Wrapper for query results with metadata."""

    rows: list[dict[str, Any]]
    row_count: int
    execution_time_ns: int


class PostgresEngine:
    """
    PostgreSQL connection manager for the relational substrate.

    Usage:
        engine = PostgresEngine(config)
        result = await engine.connect()
        rows = await engine.fetch("SELECT * FROM members WHERE id = $1", "m1")
    """

    __slots__ = ("_config", "_pool", "_stats", "_closed")

    def __init__(self, config: PostgresConfig, pool: Optional[Any] = None) -> None:
        self._config = config
        self._pool: Optional[Any] = pool  # asyncpg.Pool
        self._stats = ConnectionStats()
        self._closed = False

    async def connect(self) -> Result[None, StorageError]:
        """Create the connection pool and validate connectivity."""
        try:
            if self._pool is None:
                self._pool = await asyncpg.create_pool(
                    host=self._config.host,
                    port=self._config.port,
                    database=self._config.database,
                    user=self._config.user,
                    password=self._config.password,
                    min_size=self._config.pool_min,
                    max_size=self._config.pool_max,
                    command_timeout=self._config.query_timeout_ms / 1000,
                )

            async with self._pool.acquire() as conn:
                await conn.execute("SELECT 1")

            logger.info(
                "Relational engine initialized",
                extra={
                    "host": self._config.host,
                    "port": self._config.port,
                    "pool_size": f"{self._config.pool_min}-{self._config.pool_max}",
                },
            )
            return Ok(None)

        except _UNAVAILABLE_ERRORS as e:
            return Err(StorageError.unavailable(BACKEND, "connect", e))
        except asyncpg.PostgresError as e:
            return Err(StorageError.backend_failure(BACKEND, "connect", e))

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        """
        Acquire connection from pool.

        Raises:
            StorageError: If the engine is not connected
        """
        if self._closed or self._pool is None:
            raise StorageError.not_connected(BACKEND)

        async with self._pool.acquire() as conn:
            self._stats.active_connections += 1
            try:
                yield conn
            finally:
                self._stats.active_connections -= 1

    def _translate(self, operation: str, error: Exception) -> StorageError:
        self._stats.failed_queries += 1
        if isinstance(error, StorageError):
            return error
        if isinstance(error, _UNAVAILABLE_ERRORS):
            return StorageError.unavailable(BACKEND, operation, error)
        return StorageError.backend_failure(BACKEND, operation, error)

    async def fetch(
        self,
        query: str,
        *args: Any,
    ) -> Result[QueryResult, StorageError]:
        """
        Run a row-returning query.

        Args:
            query: SQL query string with $1, $2 placeholders
            *args: Query parameters
        """
        start = time.perf_counter_ns()
        try:
            async with self.connection() as conn:
                rows = await conn.fetch(query, *args)
        except (StorageError, asyncpg.PostgresError, *_UNAVAILABLE_ERRORS) as e:
            return Err(self._translate("fetch", e))

        result_rows = [dict(r) for r in rows]
        elapsed = time.perf_counter_ns() - start
        self._update_stats(elapsed)
        return Ok(QueryResult(
            rows=result_rows,
            row_count=len(result_rows),
            execution_time_ns=elapsed,
        ))

    async def execute(
        self,
        query: str,
        *args: Any,
    ) -> Result[str, StorageError]:
        """Run a statement; returns the server status tag (e.g. ``DELETE 1``)."""
        start = time.perf_counter_ns()
        try:
            async with self.connection() as conn:
                status = await conn.execute(query, *args)
        except (StorageError, asyncpg.PostgresError, *_UNAVAILABLE_ERRORS) as e:
            return Err(self._translate("execute", e))

        self._update_stats(time.perf_counter_ns() - start)
        return Ok(status)

    def _update_stats(self, elapsed_ns: int) -> None:
        """Update running statistics."""
        self._stats.total_queries += 1
        # Exponential moving average for query time
        alpha = 0.1
        self._stats.avg_query_time_ns = (
            alpha * elapsed_ns +
            (1 - alpha) * self._stats.avg_query_time_ns
        )

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    async def close(self) -> None:
        """Close connection pool and release resources."""
        if self._closed:
            return

        self._closed = True
        if self._pool is not None:
            await self._pool.close()
            logger.info("Relational engine closed")


__all__ = ["PostgresEngine", "QueryResult", "ConnectionStats"]
