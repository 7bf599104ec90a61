"""
Wire and dispatch event models for panelstream.

Inbound payloads arrive snake_cased from the AI gateway and are validated
with the ``*Payload`` models, which convert themselves into the dispatch
events handed to router and panel subscribers. Outbound requests are
wrapped in a ``WireEnvelope`` before being written to the socket.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from panelstream.models.character_models import CharacterSummary
from panelstream.models.error_models import ValidationErrorDetail, format_validation_errors
from panelstream.models.stream_models import UsageMetrics

# -----------------------------------------------------------------------------
# Dispatch events (router / panel level)
# -----------------------------------------------------------------------------


class _DispatchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)


class ChunkEvent(_DispatchEvent):
    """Incremental content delivery; ``full_content`` is the cumulative text so far."""

    conversation_id: str | None = None
    chunk: str = ""
    full_content: str = ""
    chunk_index: int | None = None
    tool_name: str | None = None
    message_id: str | None = None
    character_id: str | None = None
    tracking_id: str | None = None


class CompleteEvent(_DispatchEvent):
    """Final response of a streamed request."""

    conversation_id: str | None = None
    full_response: str | None = None
    message_id: str | None = None
    tool_name: str | None = None
    content_type: str | None = None
    structured_analysis: Any = None
    tool_execution: Any = None
    usage: UsageMetrics = Field(default_factory=UsageMetrics)
    character_id: str | None = None
    tracking_id: str | None = None


class ToolErrorEvent(_DispatchEvent):
    """Tool-scoped failure, usually argument validation."""

    conversation_id: str | None = None
    tool_name: str | None = None
    error: str | None = None
    validation_errors: list[ValidationErrorDetail] = Field(default_factory=list)
    tracking_id: str | None = None

    @property
    def error_message(self) -> str:
        """Field-joined validation errors when present, else the raw error string."""
        if self.validation_errors:
            return format_validation_errors(self.validation_errors)
        return self.error or ""


class ErrorEvent(_DispatchEvent):
    """Connection-level or character-scoped AI error."""

    conversation_id: str | None = None
    error: str | None = None
    character_id: str | None = None
    tracking_id: str | None = None
    message_id: str | None = None


class ProcessingEvent(_DispatchEvent):
    """The server accepted a request and started working on it."""

    conversation_id: str | None = None
    message_id: str | None = None
    character_id: str | None = None
    tracking_id: str | None = None
    status: str | None = None


class MultiCharacterStartEvent(_DispatchEvent):
    session_id: str | None = None
    conversation_id: str | None = None
    mode: str | None = None
    characters: list[CharacterSummary] = Field(default_factory=list)


class CharacterTurnEvent(_DispatchEvent):
    session_id: str | None = None
    character_id: str
    character_name: str | None = None
    order: int | None = None


class MultiCharacterCompleteEvent(_DispatchEvent):
    session_id: str | None = None
    conversation_id: str | None = None
    round_number: int = 0
    total_responses: int | None = None


# -----------------------------------------------------------------------------
# Inbound wire payloads
# -----------------------------------------------------------------------------


class _WirePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    conversation_id: str | None = None
    tracking_id: str | None = None
    panel_id: str | None = None
    character_id: str | None = None
    message_id: str | None = None
    timestamp: str | None = None


class ConversationCreatedPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    conversation_id: str


class ProcessingPayload(_WirePayload):
    status: str | None = None

    def to_event(self) -> ProcessingEvent:
        return ProcessingEvent(
            conversation_id=self.conversation_id,
            message_id=self.message_id,
            character_id=self.character_id,
            tracking_id=self.tracking_id,
            status=self.status,
        )


class ChunkPayload(_WirePayload):
    chunk: str | None = None
    chunk_index: int | None = None
    full_content: str | None = None
    tool_name: str | None = None

    def to_event(self) -> ChunkEvent:
        # The server owns accumulation; a bare delta is never concatenated client-side
        full_content = self.full_content if self.full_content is not None else (self.chunk or "")
        return ChunkEvent(
            conversation_id=self.conversation_id,
            chunk=self.chunk or "",
            full_content=full_content,
            chunk_index=self.chunk_index,
            tool_name=self.tool_name,
            message_id=self.message_id,
            character_id=self.character_id,
            tracking_id=self.tracking_id,
        )


class StreamingCompletePayload(_WirePayload):
    full_response: str | None = None
    tool_name: str | None = None
    content_type: str | None = None
    structured_analysis: Any = None
    tool_execution: Any = None
    total_tokens: int | None = None
    cost_cents: float | None = None
    duration_ms: int | None = None
    chunks_sent: int | None = None

    def to_event(self) -> CompleteEvent:
        return CompleteEvent(
            conversation_id=self.conversation_id,
            full_response=self.full_response,
            message_id=self.message_id,
            tool_name=self.tool_name,
            content_type=self.content_type,
            structured_analysis=self.structured_analysis,
            tool_execution=self.tool_execution,
            usage=UsageMetrics(
                total_tokens=self.total_tokens,
                cost_cents=self.cost_cents,
                duration_ms=self.duration_ms,
            ),
            character_id=self.character_id,
            tracking_id=self.tracking_id,
        )


class ToolErrorPayload(_WirePayload):
    tool_name: str | None = None
    message: str | None = None
    error: str | None = None
    validation_errors: list[ValidationErrorDetail] | None = None

    def to_event(self) -> ToolErrorEvent:
        return ToolErrorEvent(
            conversation_id=self.conversation_id,
            tool_name=self.tool_name,
            error=self.message or self.error,
            validation_errors=self.validation_errors or [],
            tracking_id=self.tracking_id,
        )


class AIErrorPayload(_WirePayload):
    message: str | None = None
    error: str | None = None

    def to_event(self) -> ErrorEvent:
        return ErrorEvent(
            conversation_id=self.conversation_id,
            error=self.message or self.error,
            character_id=self.character_id,
            tracking_id=self.tracking_id,
            message_id=self.message_id,
        )


class MultiCharacterStartPayload(_WirePayload):
    session_id: str | None = None
    mode: str | None = None
    characters: list[CharacterSummary] | None = None

    def to_event(self) -> MultiCharacterStartEvent:
        return MultiCharacterStartEvent(
            session_id=self.session_id,
            conversation_id=self.conversation_id,
            mode=self.mode,
            characters=self.characters or [],
        )


class CharacterTurnPayload(_WirePayload):
    session_id: str | None = None
    character_id: str
    character_name: str | None = None
    order: int | None = None

    def to_event(self) -> CharacterTurnEvent:
        return CharacterTurnEvent(
            session_id=self.session_id,
            character_id=self.character_id,
            character_name=self.character_name,
            order=self.order,
        )


class MultiCharacterCompletePayload(_WirePayload):
    session_id: str | None = None
    round_number: int = 0
    total_responses: int | None = None

    def to_event(self) -> MultiCharacterCompleteEvent:
        return MultiCharacterCompleteEvent(
            session_id=self.session_id,
            conversation_id=self.conversation_id,
            round_number=self.round_number,
            total_responses=self.total_responses,
        )


# -----------------------------------------------------------------------------
# Outbound requests
# -----------------------------------------------------------------------------


class WireEnvelope(BaseModel):
    """Frame written to the socket: ``{"event": ..., "data": {...}}``."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Convert to JSON for the socket."""
        json_str: str = self.model_dump_json()
        return json_str


class StartConversationRequest(BaseModel):
    character_id: str
    feature: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageConversationRequest(BaseModel):
    """Follow-up message or tool invocation inside an existing conversation."""

    conversation_id: str
    character_id: str
    tracking_id: str
    message: str | None = None
    ai_tool: str | None = None
    ai_tool_arguments: dict[str, Any] | None = None


class CancelResponseRequest(BaseModel):
    tracking_id: str


class PanelRequest(BaseModel):
    panel_id: str
    conversation_id: str | None = None


class MultiCharacterSessionRequest(BaseModel):
    conversation_id: str
    character_ids: list[str]
    mode: str = "sequential"
    panel_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AddCharacterRequest(BaseModel):
    conversation_id: str
    character_id: str


__all__ = [
    "AIErrorPayload",
    "AddCharacterRequest",
    "CancelResponseRequest",
    "CharacterTurnEvent",
    "CharacterTurnPayload",
    "ChunkEvent",
    "ChunkPayload",
    "CompleteEvent",
    "ConversationCreatedPayload",
    "ErrorEvent",
    "MessageConversationRequest",
    "MultiCharacterCompleteEvent",
    "MultiCharacterCompletePayload",
    "MultiCharacterSessionRequest",
    "MultiCharacterStartEvent",
    "MultiCharacterStartPayload",
    "PanelRequest",
    "ProcessingEvent",
    "ProcessingPayload",
    "StartConversationRequest",
    "StreamingCompletePayload",
    "ToolErrorEvent",
    "ToolErrorPayload",
    "WireEnvelope",
]
