"""
Observability: structured logging.
"""

from ecclesia.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    setup_logging,
)

__all__ = ["JsonFormatter", "LogLevel", "StructuredLogger", "setup_logging"]
