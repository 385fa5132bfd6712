"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    BridgeConfig,
    DiscordConfig,
    LoggingConfig,
    NotificationConfig,
    PollingConfig,
    RetryConfig,
    SyncConfig,
    TrelloConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "BridgeConfig",
    # Platform configs
    "DiscordConfig",
    "TrelloConfig",
    # Engine configs
    "SyncConfig",
    "PollingConfig",
    "NotificationConfig",
    "RetryConfig",
    "LoggingConfig",
]
