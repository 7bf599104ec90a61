"""
Constants and configuration for panelstream.
Centralizes wire event names, timeouts and the validated environment settings.
"""

from __future__ import annotations

import os
import threading

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import (
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
)

# ============================================================================
# Wire Events: Server -> Client
# ============================================================================

WS_EVENT_CONVERSATION_CREATED = "conversation_created"
WS_EVENT_AI_PROCESSING = "ai_processing"
WS_EVENT_AI_STREAMING_START = "ai_streaming_start"
WS_EVENT_AI_RESPONSE_CHUNK = "ai_response_chunk"
WS_EVENT_AI_STREAMING_COMPLETE = "ai_streaming_complete"
WS_EVENT_TOOL_ERROR = "tool_error"
WS_EVENT_AI_ERROR = "ai_error"
WS_EVENT_MULTI_CHARACTER_START = "multi_character_session_start"
WS_EVENT_CHARACTER_TURN = "character_turn"
WS_EVENT_MULTI_CHARACTER_COMPLETE = "multi_character_session_complete"

# ============================================================================
# Wire Events: Client -> Server
# ============================================================================

WS_EMIT_START_CONVERSATION = "start_ai_conversation"
WS_EMIT_MESSAGE_CONVERSATION = "message_ai_conversation"
WS_EMIT_CANCEL_RESPONSE = "cancel_ai_response"
WS_EMIT_JOIN_PANEL = "join_panel"
WS_EMIT_LEAVE_PANEL = "leave_panel"
WS_EMIT_REQUEST_MULTI_CHARACTER = "request_multi_character_session"
WS_EMIT_ADD_CHARACTER = "add_character_to_conversation"

# ============================================================================
# Conversation Event Kinds (router level)
# ============================================================================

EVENT_CHUNK = "chunk"
EVENT_COMPLETE = "complete"
EVENT_TOOL_ERROR = "tool_error"
EVENT_ERROR = "error"

ConversationEventKind = Literal["chunk", "complete", "tool_error", "error"]

#: Kinds filtered by a subscriber's supported tool set. Generic errors are never filtered.
TOOL_SCOPED_EVENTS: frozenset[str] = frozenset({EVENT_CHUNK, EVENT_COMPLETE, EVENT_TOOL_ERROR})

CONVERSATION_EVENT_KINDS: frozenset[str] = frozenset({EVENT_CHUNK, EVENT_COMPLETE, EVENT_TOOL_ERROR, EVENT_ERROR})

# ============================================================================
# Panel Event Kinds
# ============================================================================

PANEL_EVENT_PROCESSING = "processing"
PANEL_EVENT_STREAMING_START = "streaming_start"
PANEL_EVENT_CHUNK = "chunk"
PANEL_EVENT_STREAMING_COMPLETE = "streaming_complete"
PANEL_EVENT_AI_ERROR = "ai_error"
PANEL_EVENT_MULTI_CHARACTER_START = "multi_character_start"
PANEL_EVENT_CHARACTER_TURN = "character_turn"
PANEL_EVENT_MULTI_CHARACTER_COMPLETE = "multi_character_complete"

#: Prefix for the default panel id of a multi-character session
MULTI_CHARACTER_PANEL_PREFIX = "multi_char_"

# ============================================================================
# User-facing error messages
# ============================================================================

ERROR_NOT_CONNECTED = "Not connected to server"
ERROR_NO_ACTIVE_CONVERSATION = "No active conversation"
ERROR_UNSUPPORTED_TOOL = "Tool '{tool_name}' is not supported by this controller"
ERROR_SEND_MESSAGE_FAILED = "Failed to send message"
ERROR_INVOKE_FAILED = "Failed to invoke tool: {tool_name}"
ERROR_GENERIC = "An error occurred"

# ============================================================================
# Logging
# ============================================================================

LOG_MAX_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT_ERRORS = 3
LOG_PREVIEW_LENGTH = 50
SESSION_ID_LENGTH = 8

# ============================================================================
# Settings
# ============================================================================

Environment = Literal["development", "production", "test"]


def _get_env_files() -> list[Path]:
    """Determine which .env files in the working directory to load based on APP_ENV.

    Load order (later files override earlier - pydantic-settings last-wins):
    1. .env (base defaults)
    2. .env.{environment}
    3. .env.local (local developer overrides)

    Returns:
        List of Path objects for env files that exist.
    """
    env_name = os.getenv("APP_ENV", "development").lower()
    if env_name not in ("development", "production", "test"):
        env_name = "development"

    env_dir = Path.cwd()
    candidates = [
        env_dir / ".env",
        env_dir / f".env.{env_name}",
        env_dir / ".env.local",
    ]
    return [p for p in candidates if p.exists()]


class Settings(BaseSettings):
    """Environment settings for the streaming client.

    Configuration priority (highest to lowest):
    1. Values passed to Settings() constructor
    2. Environment variables (PANELSTREAM_ prefix)
    3. .env.local > .env.{APP_ENV} > .env
    """

    app_env: Environment = Field(default="development", description="Application environment")

    # Transport
    ws_url: str = Field(default="ws://localhost:8000/ws", description="WebSocket endpoint of the AI gateway")
    access_token: str | None = Field(default=None, description="Bearer token appended to the WebSocket URL")
    connect_timeout: float = Field(default=10.0, description="WebSocket open timeout (seconds)")
    conversation_create_timeout: float = Field(
        default=10.0, description="Maximum wait for conversation_created after start_ai_conversation (seconds)"
    )
    reconnect_attempts: int = Field(default=3, description="Reconnect attempts before giving up")
    reconnect_delay: float = Field(default=1.0, description="Base delay between reconnect attempts (seconds)")

    # Character catalog (REST)
    api_base_url: str = Field(default="http://localhost:8000", description="REST API base URL")
    catalog_timeout: float = Field(default=10.0, description="Character catalog request timeout (seconds)")

    # Debug and logging
    debug: bool = Field(default=False, description="Enable debug logging")
    enable_content_logging: bool = Field(
        default=False, description="Log (redacted) streamed content previews instead of hiding them"
    )
    log_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "logs", description="Directory for JSON log files"
    )

    model_config = SettingsConfigDict(
        env_prefix="PANELSTREAM_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Constructor values, then environment variables, then dotenv files."""
        dotenv_source = DotEnvSettingsSource(
            settings_cls,
            env_file=_get_env_files(),
            env_file_encoding="utf-8",
        )
        return (init_settings, env_settings, dotenv_source)

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | None) -> str:
        """Validate and normalize APP_ENV value."""
        if v is None:
            return "development"
        normalized = str(v).lower()
        if normalized not in ("development", "production", "test"):
            raise ValueError(f"app_env must be 'development', 'production', or 'test', got '{v}'")
        return normalized

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, v: str) -> str:
        """Only ws:// and wss:// endpoints are accepted."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("ws_url must start with ws:// or wss://")
        return v

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("connect_timeout", "conversation_create_timeout", "catalog_timeout")
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("reconnect_attempts")
    @classmethod
    def validate_reconnect_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("reconnect_attempts must be >= 0")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


# ============================================================================
# Settings Management
# ============================================================================


class _SettingsManager:
    """Thread-safe cached settings holder.

    Uses a class to avoid global statement warnings from linters.
    """

    __slots__ = ("_instance", "_lock")

    def __init__(self) -> None:
        self._instance: Settings | None = None
        self._lock = threading.Lock()

    def get(self) -> Settings:
        """Return the cached Settings, loading them on first use."""
        if self._instance is not None:
            return self._instance

        with self._lock:
            if self._instance is None:
                self._instance = Settings()
            return self._instance

    def reload(self) -> Settings:
        """Force reload settings from the environment."""
        with self._lock:
            self._instance = Settings()
            return self._instance

    def clear(self) -> None:
        """Clear cached settings instance (used by tests)."""
        with self._lock:
            self._instance = None


_settings_manager = _SettingsManager()


def get_settings() -> Settings:
    """Get the validated settings instance.

    Raises:
        ValueError: If configuration is invalid.
    """
    return _settings_manager.get()


def reload_settings() -> Settings:
    """Reload settings from environment and dotenv files."""
    return _settings_manager.reload()
