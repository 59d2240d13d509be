"""
Storage Backend Configuration Module
====================================

Type-safe, immutable configuration dataclasses for the storage substrates.
All configurations use frozen dataclasses for thread-safety and hash-ability.

Design Principles:
------------------
1. **Immutability**: All configs are frozen to prevent runtime mutation
2. **Validation**: Pre-conditions checked at construction time
3. **Defaults**: Sensible defaults for development; explicit for production
4. **Environment**: Supports loading from environment variables
5. **Closed selection**: The substrate is one member of ``BackendKind``,
   resolved once at startup; there is no fallback between substrates
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ecclesia.core import constants as C


# =============================================================================
# ENUMERATIONS
# =============================================================================

class BackendKind(Enum):
    """
    Storage substrate enumeration.

    Used for factory dispatch and configuration validation.
    """
    MEMORY = auto()      # Development/testing only
    LOCAL = auto()       # Single-process durable store (SQLite blobs)
    DOCUMENT = auto()    # Remote document store (Redis)
    RELATIONAL = auto()  # Remote relational store (PostgreSQL)

    @classmethod
    def parse(cls, value: str) -> BackendKind:
        """
        Resolve a backend name such as ``"local"`` or ``"relational"``.

        Raises:
            ValueError: For names outside the enumeration.
        """
        aliases = {
            "memory": cls.MEMORY,
            "in_memory": cls.MEMORY,
            "local": cls.LOCAL,
            "sqlite": cls.LOCAL,
            "document": cls.DOCUMENT,
            "redis": cls.DOCUMENT,
            "relational": cls.RELATIONAL,
            "postgres": cls.RELATIONAL,
            "postgresql": cls.RELATIONAL,
        }
        try:
            return aliases[value.strip().lower()]
        except KeyError:
            raise ValueError(
                f"unknown storage backend {value!r}; expected one of "
                f"{sorted(aliases)}"
            ) from None


class RedisMode(Enum):
    """
    Redis deployment topology.

    Determines connection setup and failover strategy.
    """
    STANDALONE = auto()  # Single node
    SENTINEL = auto()    # HA via Redis Sentinel


def _env_reader(prefix: str):
    def _get(key: str, default: str = "") -> str:
        return os.environ.get(f"{prefix}_{key}", default)

    def _get_int(key: str, default: int) -> int:
        val = _get(key)
        return int(val) if val else default

    def _get_bool(key: str, default: bool) -> bool:
        val = _get(key).lower()
        if val in ("true", "1", "yes"):
            return True
        if val in ("false", "0", "no"):
            return False
        return default

    return _get, _get_int, _get_bool


# =============================================================================
# LOCAL STORE CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class LocalConfig:
    """
    Single-process durable store configuration.

    Attributes:
        data_dir: Directory holding the SQLite file.
        db_filename: SQLite file name inside ``data_dir``.
        key_prefix: Prefix of every collection key (``ecclesia_members``).
        simulated_latency_ms: Artificial delay before each operation.
        compression: ``"lz4"`` or ``"none"`` for stored blobs.
        compression_threshold_bytes: Blobs below this size stay raw.
        cache_size_kb: SQLite page cache size.
    """
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    db_filename: str = C.LOCAL_DB_FILENAME
    key_prefix: str = C.STORAGE_KEY_PREFIX
    simulated_latency_ms: int = C.LOCAL_SIMULATED_LATENCY_MS
    compression: str = "lz4"
    compression_threshold_bytes: int = C.COMPRESSION_THRESHOLD_BYTES
    cache_size_kb: int = C.LOCAL_CACHE_SIZE_KB

    def __post_init__(self) -> None:
        if self.simulated_latency_ms < 0:
            raise ValueError(
                f"simulated_latency_ms must be >= 0, got {self.simulated_latency_ms}"
            )
        if self.compression not in ("lz4", "none"):
            raise ValueError(f"compression must be 'lz4' or 'none', got {self.compression!r}")
        if self.compression_threshold_bytes < 0:
            raise ValueError("compression_threshold_bytes must be >= 0")
        if not self.db_filename:
            raise ValueError("db_filename must be non-empty")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    @classmethod
    def from_env(cls, prefix: str = "ECCLESIA_LOCAL") -> "LocalConfig":
        """
        Environment Variables:
        - ECCLESIA_DATA_DIR: Directory for the SQLite file (default: ./data)
        - {prefix}_LATENCY_MS: Artificial delay per operation (default: 300)
        - {prefix}_COMPRESSION: lz4|none (default: lz4)
        """
        _get, _get_int, _ = _env_reader(prefix)
        return cls(
            data_dir=Path(os.environ.get("ECCLESIA_DATA_DIR", "./data")),
            db_filename=_get("DB_FILENAME", C.LOCAL_DB_FILENAME),
            simulated_latency_ms=_get_int("LATENCY_MS", C.LOCAL_SIMULATED_LATENCY_MS),
            compression=_get("COMPRESSION", "lz4").lower(),
        )


# =============================================================================
# REDIS CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class RedisConfig:
    """
    Redis connection configuration for the document substrate.

    Attributes:
        host: Redis server hostname or IP address.
        port: Redis server port (1-65535).
        password: Optional authentication password.
        db: Logical database index (0-15 for single node).
        mode: Deployment topology (standalone/sentinel).
        sentinel_hosts: (host, port) tuples for Sentinel mode.
        service_name: Sentinel master name.
        key_prefix: Namespace of every record key.
        max_connections: Connection pool size. Must be > 0.
        connect_timeout_ms: TCP connection timeout in milliseconds.
        socket_timeout_ms: Socket read/write timeout in milliseconds.
        ssl: Enable TLS encryption for connections.
    """
    sentinel_hosts: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    password: Optional[str] = None
    host: str = "localhost"
    service_name: str = "mymaster"
    key_prefix: str = C.REDIS_KEY_PREFIX

    socket_timeout_ms: int = 5000
    connect_timeout_ms: int = 2000
    max_connections: int = 20
    port: int = 6379
    db: int = 0
    mode: RedisMode = RedisMode.STANDALONE

    ssl: bool = False

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be in [1, 65535], got {self.port}")

        if self.mode == RedisMode.STANDALONE and not (0 <= self.db <= 15):
            raise ValueError(f"db must be in [0, 15] for standalone, got {self.db}")

        if self.max_connections <= 0:
            raise ValueError(f"max_connections must be > 0, got {self.max_connections}")

        if self.connect_timeout_ms <= 0:
            raise ValueError(f"connect_timeout_ms must be > 0, got {self.connect_timeout_ms}")
        if self.socket_timeout_ms <= 0:
            raise ValueError(f"socket_timeout_ms must be > 0, got {self.socket_timeout_ms}")

        if self.mode == RedisMode.SENTINEL and len(self.sentinel_hosts) == 0:
            raise ValueError("sentinel_hosts required when mode == SENTINEL")

        if not self.key_prefix:
            raise ValueError("key_prefix must be non-empty")

    @classmethod
    def from_env(cls, prefix: str = "REDIS") -> "RedisConfig":
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_HOST: Server hostname (default: localhost)
        - {prefix}_PORT: Server port (default: 6379)
        - {prefix}_PASSWORD: Authentication password
        - {prefix}_DB: Database index (default: 0)
        - {prefix}_SSL: Enable TLS (default: false)
        - {prefix}_MAX_CONNECTIONS: Pool size (default: 20)
        - {prefix}_MODE: standalone|sentinel
        - {prefix}_SENTINEL_HOSTS: Comma-separated host:port pairs
        - {prefix}_KEY_PREFIX: Record key namespace (default: ecclesia)
        """
        _get, _get_int, _get_bool = _env_reader(prefix)

        mode_str = _get("MODE", "standalone").lower()
        mode = RedisMode.SENTINEL if mode_str == "sentinel" else RedisMode.STANDALONE

        sentinel_hosts: Tuple[Tuple[str, int], ...] = tuple()
        sentinel_str = _get("SENTINEL_HOSTS")
        if sentinel_str:
            parsed: List[Tuple[str, int]] = []
            for entry in sentinel_str.split(","):
                host_port = entry.strip().split(":")
                if len(host_port) == 2:
                    parsed.append((host_port[0], int(host_port[1])))
            sentinel_hosts = tuple(parsed)

        return cls(
            host=_get("HOST", "localhost"),
            port=_get_int("PORT", 6379),
            password=_get("PASSWORD") or None,
            db=_get_int("DB", 0),
            mode=mode,
            sentinel_hosts=sentinel_hosts,
            service_name=_get("SERVICE_NAME", "mymaster"),
            key_prefix=_get("KEY_PREFIX", C.REDIS_KEY_PREFIX),
            max_connections=_get_int("MAX_CONNECTIONS", 20),
            connect_timeout_ms=_get_int("CONNECT_TIMEOUT_MS", 2000),
            socket_timeout_ms=_get_int("SOCKET_TIMEOUT_MS", 5000),
            ssl=_get_bool("SSL", False),
        )

    def get_connection_kwargs(self) -> Dict[str, Any]:
        """
        Generate kwargs for redis-py connection.

        Responses are always decoded to ``str``; documents are JSON text.
        """
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "db": self.db,
            "max_connections": self.max_connections,
            "socket_connect_timeout": self.connect_timeout_ms / 1000.0,
            "socket_timeout": self.socket_timeout_ms / 1000.0,
            "decode_responses": True,
            "ssl": self.ssl,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs


# =============================================================================
# POSTGRES CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class PostgresConfig:
    """
    PostgreSQL configuration for the relational substrate.

    ``fetch_limit`` caps full-collection reads to the most recent rows.
    """
    host: str = "localhost"
    port: int = 5432
    database: str = "ecclesia"
    user: str = "ecclesia"
    password: str = ""
    pool_min: int = C.PG_POOL_MIN
    pool_max: int = C.PG_POOL_MAX
    query_timeout_ms: int = C.PG_QUERY_TIMEOUT_MS
    fetch_limit: int = C.RELATIONAL_FETCH_LIMIT
    ssl_mode: str = "prefer"
    create_schema: bool = True

    def __post_init__(self) -> None:
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be in [1, 65535], got {self.port}")
        if self.pool_min < 1:
            raise ValueError(f"pool_min must be >= 1, got {self.pool_min}")
        if self.pool_min > self.pool_max:
            raise ValueError("pool_min cannot exceed pool_max")
        if self.fetch_limit <= 0:
            raise ValueError(f"fetch_limit must be > 0, got {self.fetch_limit}")
        if self.query_timeout_ms <= 0:
            raise ValueError(f"query_timeout_ms must be > 0, got {self.query_timeout_ms}")

    @property
    def dsn(self) -> str:
        """PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}"
            f"?sslmode={self.ssl_mode}"
        )

    @classmethod
    def from_env(cls, prefix: str = "POSTGRES") -> "PostgresConfig":
        """
        Environment Variables:
        - {prefix}_HOST, {prefix}_PORT, {prefix}_DATABASE, {prefix}_USER,
          {prefix}_PASSWORD
        - {prefix}_POOL_MIN, {prefix}_POOL_MAX
        - {prefix}_FETCH_LIMIT: Row cap for full reads (default: 1000)
        - {prefix}_CREATE_SCHEMA: Run DDL on connect (default: true)
        """
        _get, _get_int, _get_bool = _env_reader(prefix)
        return cls(
            host=_get("HOST", "localhost"),
            port=_get_int("PORT", 5432),
            database=_get("DATABASE", "ecclesia"),
            user=_get("USER", "ecclesia"),
            password=_get("PASSWORD", ""),
            pool_min=_get_int("POOL_MIN", C.PG_POOL_MIN),
            pool_max=_get_int("POOL_MAX", C.PG_POOL_MAX),
            query_timeout_ms=_get_int("QUERY_TIMEOUT_MS", C.PG_QUERY_TIMEOUT_MS),
            fetch_limit=_get_int("FETCH_LIMIT", C.RELATIONAL_FETCH_LIMIT),
            ssl_mode=_get("SSL_MODE", "prefer"),
            create_schema=_get_bool("CREATE_SCHEMA", True),
        )


# =============================================================================
# S3 CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class S3Config:
    """
    S3-compatible object store for receipts and photos.

    Supports AWS S3, MinIO, Cloudflare R2, and other S3-compatible stores.

    Attributes:
        bucket_name: S3 bucket name (required).
        region: AWS region.
        endpoint_url: Custom endpoint for MinIO/R2 (None for AWS).
        access_key_id: AWS access key (None for IAM role auth).
        secret_access_key: AWS secret key (None for IAM role auth).
        key_prefix: Object key prefix for attachments.
        connect_timeout_seconds: TCP connect timeout.
        read_timeout_seconds: Read operation timeout.
        max_retries: Max retry attempts inside botocore.
        use_ssl: Use HTTPS for connections.
    """
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    key_prefix: str = "attachments/"

    connect_timeout_seconds: int = 5
    read_timeout_seconds: int = 60
    max_retries: int = 3

    use_ssl: bool = True

    def __post_init__(self) -> None:
        if not self.bucket_name or len(self.bucket_name) < 3:
            raise ValueError("bucket_name must be at least 3 characters")
        if self.connect_timeout_seconds <= 0:
            raise ValueError("connect_timeout_seconds must be > 0")
        if self.read_timeout_seconds <= 0:
            raise ValueError("read_timeout_seconds must be > 0")

    @classmethod
    def from_env(cls, prefix: str = "S3") -> Optional["S3Config"]:
        """
        Construct configuration from environment variables.

        Returns None when ``{prefix}_BUCKET`` is unset, which selects
        inline attachments.
        """
        _get, _get_int, _get_bool = _env_reader(prefix)

        bucket = _get("BUCKET")
        if not bucket:
            return None

        return cls(
            bucket_name=bucket,
            region=_get("REGION", "us-east-1"),
            endpoint_url=_get("ENDPOINT_URL") or None,
            access_key_id=_get("ACCESS_KEY_ID") or os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get("SECRET_ACCESS_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY"),
            key_prefix=_get("KEY_PREFIX", "attachments/"),
            connect_timeout_seconds=_get_int("CONNECT_TIMEOUT", 5),
            read_timeout_seconds=_get_int("READ_TIMEOUT", 60),
            max_retries=_get_int("MAX_RETRIES", 3),
            use_ssl=_get_bool("USE_SSL", True),
        )


# =============================================================================
# UNIFIED STORAGE CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class StorageConfig:
    """
    Unified configuration for the storage layer.

    Attributes:
        backend: Substrate selected at startup.
        local: Local store settings (always present).
        redis: Redis settings (required when backend is DOCUMENT).
        postgres: PostgreSQL settings (required when backend is RELATIONAL).
        s3: Attachment bucket; None stores attachments inline.
    """
    backend: BackendKind = BackendKind.LOCAL
    local: LocalConfig = field(default_factory=LocalConfig)
    redis: Optional[RedisConfig] = None
    postgres: Optional[PostgresConfig] = None
    s3: Optional[S3Config] = None

    def __post_init__(self) -> None:
        """
        Validate backend configuration consistency.

        Raises:
            ValueError: When the selected backend lacks its settings.
        """
        if self.backend == BackendKind.DOCUMENT and self.redis is None:
            raise ValueError("redis config required when backend=DOCUMENT")
        if self.backend == BackendKind.RELATIONAL and self.postgres is None:
            raise ValueError("postgres config required when backend=RELATIONAL")

    @classmethod
    def for_testing(cls, data_dir: Optional[Path] = None) -> "StorageConfig":
        """In-memory substrate; ``data_dir`` only matters for local stores."""
        local = LocalConfig(data_dir=data_dir or Path("./data"), simulated_latency_ms=0)
        return cls(backend=BackendKind.MEMORY, local=local)

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Construct full configuration from environment.

        Environment Variables:
        - ECCLESIA_BACKEND: memory|local|document|relational (default: local)

        Plus backend-specific variables (ECCLESIA_LOCAL_*, REDIS_*,
        POSTGRES_*, S3_*).

        Raises:
            ValueError: For an unknown backend name or invalid settings.
        """
        backend = BackendKind.parse(os.environ.get("ECCLESIA_BACKEND", "local"))

        redis = RedisConfig.from_env() if backend == BackendKind.DOCUMENT else None
        postgres = PostgresConfig.from_env() if backend == BackendKind.RELATIONAL else None

        return cls(
            backend=backend,
            local=LocalConfig.from_env(),
            redis=redis,
            postgres=postgres,
            s3=S3Config.from_env(),
        )


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "BackendKind",
    "RedisMode",
    "LocalConfig",
    "RedisConfig",
    "PostgresConfig",
    "S3Config",
    "StorageConfig",
]
