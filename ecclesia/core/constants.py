"""
System-Wide Constants for the Ecclesia Record Keeper

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024

SECOND_MS: Final[int] = 1000
MINUTE_S: Final[int] = 60

NS_PER_MS: Final[int] = 1_000_000

# =============================================================================
# DOMAIN
# =============================================================================
ROOT_SECTOR_ID: Final[str] = "SEDE"
ROOT_SECTOR_NAME: Final[str] = "Sede Principal"

# Sentinel accepted by sector filters meaning "every sector".
ALL_SECTORS: Final[str] = "ALL"

# Day of month used for tithe records created for past or future months.
TITHE_RECORD_DAY: Final[int] = 10

# =============================================================================
# CACHE
# =============================================================================
DEFAULT_CACHE_TTL_SECONDS: Final[int] = 5 * MINUTE_S

# =============================================================================
# LOCAL STORE (SQLite key/value blobs)
# =============================================================================
STORAGE_KEY_PREFIX: Final[str] = "ecclesia_"
LOCAL_DB_FILENAME: Final[str] = "ecclesia.db"
LOCAL_SIMULATED_LATENCY_MS: Final[int] = 300
LOCAL_CACHE_SIZE_KB: Final[int] = 8 * 1024
COMPRESSION_THRESHOLD_BYTES: Final[int] = 1 * KB

# =============================================================================
# DOCUMENT STORE (Redis)
# =============================================================================
REDIS_KEY_PREFIX: Final[str] = "ecclesia"

# =============================================================================
# RELATIONAL STORE (PostgreSQL)
# =============================================================================
RELATIONAL_FETCH_LIMIT: Final[int] = 1000
PG_POOL_MIN: Final[int] = 1
PG_POOL_MAX: Final[int] = 10
PG_QUERY_TIMEOUT_MS: Final[int] = 30 * SECOND_MS

# =============================================================================
# SESSION / CREDENTIALS
# =============================================================================
SESSION_MARKER_FILENAME: Final[str] = "session.json"
PBKDF2_ALGORITHM: Final[str] = "sha256"
PBKDF2_ITERATIONS: Final[int] = 240_000
PBKDF2_SALT_BYTES: Final[int] = 16

DEFAULT_ADMIN_EMAIL: Final[str] = "admin@ecclesia.local"
DEFAULT_ADMIN_NAME: Final[str] = "Administrador"
DEFAULT_ADMIN_PASSWORD: Final[str] = "ecclesia-admin"
