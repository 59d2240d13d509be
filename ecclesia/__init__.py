"""
Ecclesia Record Keeper: Data Access and Caching Layer

Persistence for a congregation's administrative records (members,
finances, discipline, assets, works, sectors and credentials) over one
of several interchangeable substrates:
- Memory: process-local store for tests and demos
- Local: single SQLite file with LZ4-compressed JSON blobs
- Document: Redis hashes, one per record
- Relational: PostgreSQL tables, one per collection

A per-session cache manager sits in front of the chosen substrate and
gives read-your-writes with a five minute reuse window.
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from ecclesia.core.types import Result, Ok, Err
from ecclesia.core.errors import (
    EcclesiaError,
    ErrorCode,
    StorageError,
    ValidationError,
    ConfigurationError,
)
from ecclesia.core.entities import (
    Asset,
    Collection,
    Discipline,
    Member,
    PublicProfile,
    Sector,
    Transaction,
    User,
    WorkProject,
)
from ecclesia.core.config import EcclesiaConfig
from ecclesia.storage import BackendKind, RecordAdapter, StorageConfig, create_adapter
from ecclesia.cache import CacheManager
from ecclesia.bootstrap import seed_database
from ecclesia.session import SessionGate, SessionMarkerStore
from ecclesia.services import RecordService

__all__ = [
    # Version
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "EcclesiaError",
    "ErrorCode",
    "StorageError",
    "ValidationError",
    "ConfigurationError",
    # Entities
    "Asset",
    "Collection",
    "Discipline",
    "Member",
    "PublicProfile",
    "Sector",
    "Transaction",
    "User",
    "WorkProject",
    # Config
    "EcclesiaConfig",
    "StorageConfig",
    "BackendKind",
    # Components
    "RecordAdapter",
    "create_adapter",
    "CacheManager",
    "seed_database",
    "SessionGate",
    "SessionMarkerStore",
    "RecordService",
]
