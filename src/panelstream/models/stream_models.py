"""
State models for streaming invocations, panels and multi-character sessions.

Mutable state lives in plain dataclasses owned by exactly one controller;
observers only ever receive the frozen snapshot types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class InvocationState(str, Enum):
    """Life cycle of a single tool invocation."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        return self in (InvocationState.ANALYZING, InvocationState.STREAMING)


class CharacterResponseStatus(str, Enum):
    """Per-character response slot status inside a multi-character session."""

    PENDING = "pending"
    PROCESSING = "processing"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"


SessionMode = Literal["sequential", "simultaneous", "discussion", "moderated"]

SESSION_MODES: tuple[str, ...] = ("sequential", "simultaneous", "discussion", "moderated")


class UsageMetrics(BaseModel):
    """Token, cost and latency figures reported with a completed response."""

    model_config = ConfigDict(frozen=True)

    total_tokens: int | None = None
    cost_cents: float | None = None
    duration_ms: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.total_tokens is None and self.cost_cents is None and self.duration_ms is None


class AnalysisResult(BaseModel):
    """Completed tool output: raw response text plus the mapped structured payload."""

    model_config = ConfigDict(frozen=True)

    raw: str | None = None
    structured: Any = None


@dataclass(frozen=True, slots=True)
class InvocationSnapshot:
    """Read-only view of a StreamingInvocationController."""

    state: InvocationState
    conversation_id: str | None
    tool_name: str | None
    tracking_id: str | None
    streaming_content: str
    analysis: AnalysisResult | None
    structured_analysis: Any
    error: str | None
    metrics: UsageMetrics | None
    message_id: str | None
    is_connected: bool

    @property
    def is_analyzing(self) -> bool:
        return self.state.is_active

    @property
    def is_streaming(self) -> bool:
        return self.state is InvocationState.STREAMING


@dataclass
class CharacterResponse:
    """Response slot for one character in a multi-character session."""

    status: CharacterResponseStatus = CharacterResponseStatus.PENDING
    content: str = ""
    tracking_id: str | None = None
    metrics: UsageMetrics | None = None
    error: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in (CharacterResponseStatus.PROCESSING, CharacterResponseStatus.STREAMING)


@dataclass(frozen=True, slots=True)
class CurrentCharacter:
    """Character that currently holds the turn."""

    id: str
    name: str | None = None
    order: int | None = None


@dataclass(frozen=True, slots=True)
class CharacterResponseView:
    """A response slot joined with its character's display metadata."""

    character_id: str
    character_name: str
    status: CharacterResponseStatus
    content: str
    tracking_id: str | None
    metrics: UsageMetrics | None
    error: str | None


@dataclass
class ConversationState:
    """Router-side bookkeeping for one conversation."""

    conversation_id: str
    character_id: str | None = None
    feature: str | None = None
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    is_processing: bool = False
    is_streaming: bool = False
    stream_content: str = ""
    current_message_id: str | None = None
    current_tool: str | None = None
    last_chunk_index: int | None = None
    last_response: str | None = None
    last_message_id: str | None = None
    last_tool: str | None = None
    last_error: str | None = None


@dataclass(frozen=True, slots=True)
class PanelState:
    """Snapshot returned by PanelRegistry.get_panel_state."""

    panel_id: str
    conversation_id: str | None
    is_streaming: bool
    current_content: str
    active_messages: int
    last_error: str | None


__all__ = [
    "SESSION_MODES",
    "AnalysisResult",
    "CharacterResponse",
    "CharacterResponseStatus",
    "CharacterResponseView",
    "ConversationState",
    "CurrentCharacter",
    "InvocationSnapshot",
    "InvocationState",
    "PanelState",
    "SessionMode",
    "UsageMetrics",
]
