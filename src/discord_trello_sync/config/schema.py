"""Pydantic models for configuration schema."""

import re
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SNOWFLAKE_PATTERN = re.compile(r"^\d{15,21}$")
TRELLO_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{32}$")


def _validate_snowflake(value: str, field_name: str) -> str:
    if not SNOWFLAKE_PATTERN.match(value):
        raise ValueError(f"{field_name} must be a numeric Discord id, got: {value!r}")
    return value


class DiscordConfig(BaseModel):
    """Discord-specific configuration."""

    bot_token: str
    guild_id: str
    forum_channel_id: str
    request_timeout: float = Field(15.0, gt=0, le=60)
    creator_fallback_name: str = "Unknown"

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate that the bot token looks like a token and not a placeholder."""
        if not v or v.startswith("${"):
            raise ValueError("Discord bot token is not set")
        return v

    @field_validator("guild_id")
    @classmethod
    def validate_guild_id(cls, v: str) -> str:
        """Validate guild id format."""
        return _validate_snowflake(v, "guild_id")

    @field_validator("forum_channel_id")
    @classmethod
    def validate_forum_channel_id(cls, v: str) -> str:
        """Validate forum channel id format."""
        return _validate_snowflake(v, "forum_channel_id")


class TrelloConfig(BaseModel):
    """Trello-specific configuration."""

    api_key: str
    api_token: str
    board_id: str
    list_id: str
    base_url: str = "https://api.trello.com/1"
    request_timeout: float = Field(15.0, gt=0, le=60)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate Trello API key format."""
        if not TRELLO_KEY_PATTERN.match(v):
            raise ValueError("Trello API key must be 32 hexadecimal characters")
        return v

    @field_validator("api_token")
    @classmethod
    def validate_api_token(cls, v: str) -> str:
        """Validate that the Trello token is present."""
        if not v.strip():
            raise ValueError("Trello API token must not be empty")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an https base URL without trailing slash."""
        if not v.startswith("https://"):
            raise ValueError("Trello base_url must use https")
        return v.rstrip("/")


class SyncConfig(BaseModel):
    """Thread-to-card synchronization configuration."""

    creation_wait_timeout: float = Field(10.0, gt=0, le=120)
    history_page_size: int = Field(100, ge=1, le=100)
    display_timezone: str = "UTC"
    reconcile_on_startup: bool = True

    @field_validator("display_timezone")
    @classmethod
    def validate_display_timezone(cls, v: str) -> str:
        """Validate that the timezone is a known IANA zone."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class PollingConfig(BaseModel):
    """Trello change polling configuration."""

    enabled: bool = True
    interval_seconds: float = Field(30.0, ge=1.0, le=3600.0)
    lookback_minutes: int = Field(30, ge=0)
    failure_threshold: int = Field(5, ge=1, le=100)
    processed_action_cap: int = Field(2000, ge=10)
    content_hash_cap: int = Field(2000, ge=10)
    delivery_delay: float = Field(0.1, ge=0.0, le=10.0)
    startup_scan_limit: int = Field(50, ge=1, le=100)
    action_page_limit: int = Field(100, ge=1, le=1000)


class NotificationConfig(BaseModel):
    """Which card changes are relayed into threads."""

    label_changes: bool = True
    checklist_changes: bool = True
    member_changes: bool = True
    due_date_changes: bool = True
    comment_changes: bool = True
    footer_marker: str = "Trello"
    footer_icon_url: str | None = "https://cdn.iconscout.com/icon/free/png-256/trello-226529.png"

    @field_validator("footer_marker")
    @classmethod
    def validate_footer_marker(cls, v: str) -> str:
        """The footer marker identifies our own notifications and must be set."""
        if not v.strip():
            raise ValueError("footer_marker must not be empty")
        return v


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/discord-trello-sync/sync.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RetryConfig(BaseModel):
    """Retry configuration for transient failures."""

    max_attempts: int = Field(3, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.0, le=10.0)
    max_delay: float = Field(30.0, ge=0.0, le=300.0)


class BridgeConfig(BaseSettings):
    """Root configuration for discord-trello-sync."""

    discord: DiscordConfig
    trello: TrelloConfig
    sync: SyncConfig = SyncConfig()
    polling: PollingConfig = PollingConfig()
    notifications: NotificationConfig = NotificationConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
    )
