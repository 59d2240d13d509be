"""
Core module: Type definitions, error hierarchy, entities and configuration.

This module provides the foundational abstractions for the record keeper:
- Result/Either monads for fallible boundaries
- Error hierarchy shared by every substrate
- Immutable domain entities and collection names
"""

from ecclesia.core.types import (
    Result,
    Ok,
    Err,
    utc_now_iso,
)
from ecclesia.core.errors import (
    ErrorCode,
    EcclesiaError,
    StorageError,
    ValidationError,
    ConfigurationError,
)
from ecclesia.core.entities import (
    Asset,
    AssetCondition,
    Collection,
    Discipline,
    ExpenseCategory,
    Member,
    PaymentMethod,
    PublicProfile,
    Role,
    Sector,
    Transaction,
    TransactionType,
    User,
    WorkProject,
    WorkStatus,
    missing_fields,
    new_record_id,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "utc_now_iso",
    "ErrorCode",
    "EcclesiaError",
    "StorageError",
    "ValidationError",
    "ConfigurationError",
    "Asset",
    "AssetCondition",
    "Collection",
    "Discipline",
    "ExpenseCategory",
    "Member",
    "PaymentMethod",
    "PublicProfile",
    "Role",
    "Sector",
    "Transaction",
    "TransactionType",
    "User",
    "WorkProject",
    "WorkStatus",
    "missing_fields",
    "new_record_id",
]
