"""
Logging setup for panelstream using Python's standard logging
with JSON formatting for structured error logs.

Log destinations:
- Console (stderr): Human-readable, colored level tags
- {log_dir}/errors.jsonl: JSON format for error tracking (log_dir defaults to ./logs)
"""

from __future__ import annotations

import logging
import logging.handlers
import re
import sys
import uuid

from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import json as jsonlogger

from panelstream.core.constants import (
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    SESSION_ID_LENGTH,
    get_settings,
)

# PII Redaction patterns
REDACTION_PATTERNS = [
    (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]"),
    (r"\b(?:\d{4}[- ]?){3}\d{4}\b", "[CARD]"),
    (r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b", "[API_KEY]"),
    (r"\b(password|secret|token)\s*[:=]\s*\S+", "[REDACTED]"),
]

#: Panel currently being serviced; attached to every record logged inside it
_panel_context: ContextVar[str | None] = ContextVar("panel_context", default=None)


class ErrorFilter(logging.Filter):
    """Filter to only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level tag.
    Format: HH:MM:SS [LEVEL] logger_name - message
    """

    GREY = "\x1b[38;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    _LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        level_fmt = f"[{record.levelname}]"
        color = self._LEVEL_COLORS.get(record.levelno)
        if color:
            level_fmt = f"{color}{level_fmt}{self.RESET}"

        record.asctime = self.formatTime(record, "%H:%M:%S")
        message = f"{record.asctime} {level_fmt} {record.name} - {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(name: str = "panelstream", debug: bool | None = None) -> logging.Logger:
    """
    Set up logging with console and JSON error handlers.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides settings.debug)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    logger.handlers = []

    settings = get_settings()
    if debug is None:
        debug = settings.debug

    # --- Console Handler (Human-readable) ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    # --- Error Log Handler (JSON) ---
    log_dir = settings.log_dir
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        # Console only
        logger.warning(f"Error log directory {log_dir} unavailable, JSON error log disabled: {e}")
        return logger

    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / "errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
        encoding="utf-8",
        delay=True,
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s %(panel_id)s %(conversation_id)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


def set_panel_context(panel_id: str | None) -> Any:
    """Bind a panel id to subsequent log records in this context.

    Returns:
        Token for ``reset_panel_context``
    """
    return _panel_context.set(panel_id)


def reset_panel_context(token: Any) -> None:
    _panel_context.reset(token)


class StreamLogger:
    """
    High-level logging interface for panelstream.
    Wraps standard Python logging with convenience methods.
    """

    def __init__(self, name: str = "panelstream"):
        self._name = name
        self._logger: logging.Logger | None = None
        self.session_id = str(uuid.uuid4())[:SESSION_ID_LENGTH]

    @property
    def logger(self) -> logging.Logger:
        # Configured lazily so importing the package never touches settings or disk
        if self._logger is None:
            self._logger = setup_logging(self._name)
        return self._logger

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Enrich log arguments with the client session id and bound panel."""
        kwargs.setdefault("session_id", self.session_id)
        panel_id = _panel_context.get()
        if panel_id is not None:
            kwargs.setdefault("panel_id", panel_id)
        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        """Debug level logging"""
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Info level logging"""
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Warning level logging"""
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def _should_log_content(self) -> bool:
        """Check if content logging is enabled via settings."""
        try:
            return bool(get_settings().enable_content_logging)
        except Exception:
            return False

    def _redact_content(self, text: str) -> str:
        """Redact PII from text using defined patterns."""
        if not text:
            return text

        redacted = text
        for pattern, replacement in REDACTION_PATTERNS:
            redacted = re.sub(pattern, replacement, redacted)
        return redacted

    def preview(self, text: str | None) -> str:
        """Return a loggable preview of streamed content (redacted or hidden)."""
        if not self._should_log_content():
            return "[HIDDEN]"
        text = text or ""
        snippet = self._redact_content(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        if len(text) > LOG_PREVIEW_LENGTH:
            snippet += "..."
        return snippet

    def log_transition(
        self,
        component: str,
        old_state: str,
        new_state: str,
        conversation_id: str | None = None,
        tool_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a state-machine transition at debug level."""
        parts = [f"{component}: {old_state} -> {new_state}"]
        if tool_name:
            parts.append(f"[tool={tool_name}]")
        if conversation_id:
            parts.append(f"[conversation={conversation_id}]")

        self.debug(
            " ".join(parts),
            transition=True,
            from_state=old_state,
            to_state=new_state,
            conversation_id=conversation_id,
            tool_name=tool_name,
            **kwargs,
        )


# Global logger instance
logger = StreamLogger()
