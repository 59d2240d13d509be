"""
Configuration Management for the Ecclesia Record Keeper

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from ecclesia.core import constants as C
from ecclesia.core.errors import ConfigurationError
from ecclesia.core.types import Err, Ok, Result
from ecclesia.storage.config import StorageConfig


@dataclass(frozen=True)
class CacheConfig:
    """Cache manager configuration."""

    ttl_seconds: float = C.DEFAULT_CACHE_TTL_SECONDS


@dataclass(frozen=True)
class SeedConfig:
    """
    First-run seeding.

    The admin credential is only written when the user collection is empty.
    """

    admin_email: str = C.DEFAULT_ADMIN_EMAIL
    admin_name: str = C.DEFAULT_ADMIN_NAME
    admin_password: str = field(default=C.DEFAULT_ADMIN_PASSWORD, repr=False)
    sample_members: bool = False

    @property
    def uses_default_password(self) -> bool:
        return self.admin_password == C.DEFAULT_ADMIN_PASSWORD


@dataclass(frozen=True)
class SessionConfig:
    """Where the session marker lives."""

    marker_path: Path = field(
        default_factory=lambda: Path("./data") / C.SESSION_MARKER_FILENAME
    )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = False


@dataclass(frozen=True)
class EcclesiaConfig:
    """Root configuration for the record keeper."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[EcclesiaConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with ECCLESIA_.
        Example: ECCLESIA_BACKEND, ECCLESIA_CACHE_TTL_SECONDS
        """
        try:
            storage = StorageConfig.from_env()

            cache = CacheConfig(
                ttl_seconds=float(
                    os.getenv("ECCLESIA_CACHE_TTL_SECONDS", str(C.DEFAULT_CACHE_TTL_SECONDS))
                ),
            )

            seed = SeedConfig(
                admin_email=os.getenv("ECCLESIA_ADMIN_EMAIL", C.DEFAULT_ADMIN_EMAIL),
                admin_name=os.getenv("ECCLESIA_ADMIN_NAME", C.DEFAULT_ADMIN_NAME),
                admin_password=os.getenv("ECCLESIA_ADMIN_PASSWORD", C.DEFAULT_ADMIN_PASSWORD),
                sample_members=os.getenv("ECCLESIA_SEED_SAMPLE_MEMBERS", "false").lower()
                in ("true", "1", "yes"),
            )

            marker_default = storage.local.data_dir / C.SESSION_MARKER_FILENAME
            session = SessionConfig(
                marker_path=Path(os.getenv("ECCLESIA_SESSION_FILE", str(marker_default))),
            )

            observability = ObservabilityConfig(
                log_level=os.getenv("ECCLESIA_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv("ECCLESIA_LOG_JSON", "false").lower() in ("true", "1", "yes"),
            )

            return Ok(cls(
                storage=storage,
                cache=cache,
                seed=seed,
                session=session,
                observability=observability,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.cache.ttl_seconds < 0:
            return Err("Cache TTL cannot be negative")
        if not self.seed.admin_email.strip():
            return Err("Seed admin email must be non-empty")
        if not self.seed.admin_password:
            return Err("Seed admin password must be non-empty")
        if self.observability.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return Err(f"Unknown log level {self.observability.log_level!r}")
        return Ok(None)

    @classmethod
    def load(cls) -> EcclesiaConfig:
        """
        Load from the environment and validate.

        Raises:
            ConfigurationError: If loading or validation fails.
        """
        loaded = cls.from_env()
        if loaded.is_err():
            raise ConfigurationError.invalid(loaded.error)
        config = loaded.unwrap()
        checked = config.validate()
        if checked.is_err():
            raise ConfigurationError.invalid(checked.error)
        return config
