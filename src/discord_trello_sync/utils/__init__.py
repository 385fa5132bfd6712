"""Utility functions and helpers.

This module provides various utilities for the bridge:
- security: Secret redaction
- async_helpers: Error hierarchy, retry and timeouts
- logging: Structured logging with secret sanitization
- health: Health check utilities
"""

from discord_trello_sync.utils.async_helpers import (
    BoardAPIError,
    CardSyncError,
    MappingConflictError,
    NotificationDeliveryError,
    RemoteTimeoutError,
    SyncError,
    TransientBoardError,
)
from discord_trello_sync.utils.health import (
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from discord_trello_sync.utils.logging import (
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from discord_trello_sync.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Errors
    "BoardAPIError",
    "CardSyncError",
    # Health
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    # Logging
    "LogFormat",
    "LogLevel",
    "MappingConflictError",
    "NotificationDeliveryError",
    # Security
    "RedactionError",
    "RemoteTimeoutError",
    "SecretRedactor",
    "SecurityError",
    "SyncError",
    "TransientBoardError",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
