"""
Error codes, exceptions and validation error models for panelstream.

Transports and catalogs raise the exceptions defined here; controllers
catch them at their boundary and surface a human-readable ``error`` string.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Connection errors (1xxx)
    NOT_CONNECTED = "CONN_1001"
    CONNECTION_FAILED = "CONN_1002"
    CONNECTION_LOST = "CONN_1003"

    # Guard violations (2xxx)
    UNSUPPORTED_TOOL = "GUARD_2001"
    INVOCATION_IN_PROGRESS = "GUARD_2002"
    NO_ACTIVE_CONVERSATION = "GUARD_2003"
    SESSION_ACTIVE = "GUARD_2004"

    # Tool validation errors (3xxx)
    TOOL_VALIDATION = "TOOL_3001"
    TOOL_EXECUTION = "TOOL_3002"

    # Transport-level errors (4xxx)
    TRANSPORT_ERROR = "TRANS_4001"
    TRANSPORT_TIMEOUT = "TRANS_4002"
    REQUEST_FAILED = "TRANS_4003"

    # Conversation errors (5xxx)
    CONVERSATION_CREATE_FAILED = "CONV_5001"
    CONVERSATION_CREATE_TIMEOUT = "CONV_5002"

    # Character catalog errors (6xxx)
    CHARACTER_NOT_FOUND = "CHAR_6001"
    CHARACTER_CATALOG_ERROR = "CHAR_6002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"


class ValidationErrorDetail(BaseModel):
    """Field-level validation error reported by a server-side tool handler."""

    field: str | None = None
    message: str
    code: str | None = None

    def format(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


def format_validation_errors(errors: Iterable[ValidationErrorDetail | dict[str, Any]]) -> str:
    """Join validation errors as ``"field: message"`` pairs separated by ``", "``."""
    parts = []
    for error in errors:
        detail = error if isinstance(error, ValidationErrorDetail) else ValidationErrorDetail.model_validate(error)
        parts.append(detail.format())
    return ", ".join(parts)


class StreamingError(Exception):
    """Base exception for streaming orchestration failures."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: ErrorCode | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class TransportNotConnectedError(StreamingError):
    """Raised when a transport call is attempted without a live connection."""

    code = ErrorCode.NOT_CONNECTED

    def __init__(self, message: str = "WebSocket not connected", **kwargs: Any):
        super().__init__(message, **kwargs)


class TransportConnectionError(StreamingError):
    """Raised when the duplex connection cannot be (re)established."""

    code = ErrorCode.CONNECTION_FAILED


class TransportRequestError(StreamingError):
    """Raised when the transport fails to send a request."""

    code = ErrorCode.REQUEST_FAILED


class ConversationCreationError(StreamingError):
    """Raised when the server rejects or never acknowledges conversation creation."""

    code = ErrorCode.CONVERSATION_CREATE_FAILED


class CharacterNotFoundError(StreamingError):
    """Raised when the catalog has no character with the requested id."""

    code = ErrorCode.CHARACTER_NOT_FOUND


class CharacterCatalogError(StreamingError):
    """Raised when the character catalog cannot be queried."""

    code = ErrorCode.CHARACTER_CATALOG_ERROR


__all__ = [
    "CharacterCatalogError",
    "CharacterNotFoundError",
    "ConversationCreationError",
    "ErrorCode",
    "StreamingError",
    "TransportConnectionError",
    "TransportNotConnectedError",
    "TransportRequestError",
    "ValidationErrorDetail",
    "format_validation_errors",
]
