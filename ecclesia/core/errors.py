"""
Error Hierarchy for the Ecclesia Record Keeper

Design Principles:
- Connection and configuration boundaries return Result types
- Record operations raise typed errors; nothing is swallowed except
  during bootstrap seeding, which logs and continues
- Carry full error context for debugging and audit trails

Taxonomy as seen by callers:
- Record absent on delete: silent no-op, no error
- Duplicate identity on register: ``False`` return, no error
- Substrate unreachable: StorageError (STORAGE_UNAVAILABLE)
- Missing required fields: ValidationError, raised before any substrate call

Usage:
    try:
        await cache.write(Collection.MEMBERS, member)
    except ValidationError as e:
        show_form_errors(e.context["fields"])
    except StorageError as e:
        if e.code is ErrorCode.STORAGE_UNAVAILABLE:
            show_offline_banner()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import uuid4

from ecclesia.core.types import utc_now_iso


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Storage errors
    - 2xxx: Validation errors
    - 9xxx: Internal/configuration errors
    """

    # Storage errors (1xxx)
    STORAGE_UNAVAILABLE = 1001
    STORAGE_TIMEOUT = 1002
    STORAGE_BACKEND_FAILURE = 1003
    STORAGE_CORRUPTION = 1006

    # Validation errors (2xxx)
    VALIDATION_MISSING_FIELDS = 2001
    VALIDATION_PROTECTED_RECORD = 2002
    VALIDATION_INVALID_VALUE = 2003

    # Internal errors (9xxx)
    INTERNAL_CONFIGURATION_ERROR = 9002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class EcclesiaError(Exception):
    """
    Base class for all record keeper errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: str = field(default_factory=utc_now_iso)
    cause: Optional[Exception] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Initialize Exception base class with message
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary for logging.

        Excludes the cause so driver internals stay out of log payloads.
        """
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# STORAGE ERRORS
# =============================================================================
@dataclass
class StorageError(EcclesiaError):
    """
    Errors from the storage substrates (SQLite, Redis, PostgreSQL, S3).

    Adapters never retry; every failure reaches the caller exactly once.
    """

    @property
    def is_unavailable(self) -> bool:
        return self.code in (ErrorCode.STORAGE_UNAVAILABLE, ErrorCode.STORAGE_TIMEOUT)

    @classmethod
    def unavailable(
        cls,
        backend: str,
        operation: str,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Substrate could not be reached."""
        return cls(
            code=ErrorCode.STORAGE_UNAVAILABLE,
            message=f"{backend} unavailable during {operation}: {cause}",
            cause=cause,
            context={"backend": backend, "operation": operation},
        )

    @classmethod
    def not_connected(cls, backend: str) -> StorageError:
        """Operation attempted before connect() or after close()."""
        return cls(
            code=ErrorCode.STORAGE_UNAVAILABLE,
            message=f"{backend} store is not connected",
            context={"backend": backend},
        )

    @classmethod
    def timeout(
        cls,
        backend: str,
        operation: str,
        duration_ms: int,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Operation timed out."""
        return cls(
            code=ErrorCode.STORAGE_TIMEOUT,
            message=f"{backend} operation '{operation}' timed out after {duration_ms}ms",
            cause=cause,
            context={"backend": backend, "operation": operation, "duration_ms": duration_ms},
        )

    @classmethod
    def backend_failure(
        cls,
        backend: str,
        operation: str,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Substrate reachable but rejected the operation."""
        return cls(
            code=ErrorCode.STORAGE_BACKEND_FAILURE,
            message=f"{backend} rejected {operation}: {cause}",
            cause=cause,
            context={"backend": backend, "operation": operation},
        )

    @classmethod
    def corruption(
        cls,
        description: str,
        key: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Stored payload could not be decoded."""
        return cls(
            code=ErrorCode.STORAGE_CORRUPTION,
            message=f"Data corruption detected: {description}",
            cause=cause,
            context={"key": key},
        )


# =============================================================================
# VALIDATION ERRORS
# =============================================================================
@dataclass
class ValidationError(EcclesiaError):
    """
    Input rejected before any cache or substrate effect.
    """

    @classmethod
    def missing_fields(
        cls,
        entity_type: str,
        fields: Iterable[str],
    ) -> ValidationError:
        """Required fields are absent or blank."""
        names = list(fields)
        return cls(
            code=ErrorCode.VALIDATION_MISSING_FIELDS,
            message=f"{entity_type} is missing required fields: {', '.join(names)}",
            context={"entity_type": entity_type, "fields": names},
        )

    @classmethod
    def protected_record(
        cls,
        collection: str,
        record_id: str,
    ) -> ValidationError:
        """Attempt to delete a record that must always exist."""
        return cls(
            code=ErrorCode.VALIDATION_PROTECTED_RECORD,
            message=f"{collection} record '{record_id}' cannot be deleted",
            context={"collection": collection, "record_id": record_id},
        )

    @classmethod
    def invalid_value(
        cls,
        field: str,
        value: Any,
        reason: str,
    ) -> ValidationError:
        """Input value rejected."""
        return cls(
            code=ErrorCode.VALIDATION_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            context={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigurationError(EcclesiaError):
    """Startup configuration is inconsistent."""

    @classmethod
    def invalid(cls, reason: str, cause: Optional[Exception] = None) -> ConfigurationError:
        return cls(
            code=ErrorCode.INTERNAL_CONFIGURATION_ERROR,
            message=f"Configuration error: {reason}",
            cause=cause,
            context={"reason": reason},
        )


__all__ = [
    "ErrorCode",
    "EcclesiaError",
    "StorageError",
    "ValidationError",
    "ConfigurationError",
]
