"""
Models Module - Event, State and Error Definitions
==================================================

Pydantic models validate everything that crosses the wire; dataclasses hold
controller-owned state.

Modules:
    event_models: Inbound wire payloads, dispatch events and outbound requests
    stream_models: Invocation/panel/conversation state and frozen snapshots
    character_models: Character catalog configuration
    error_models: Error codes, exception hierarchy and validation error formatting
"""

from panelstream.models.character_models import CharacterConfig, CharacterSummary
from panelstream.models.error_models import (
    CharacterCatalogError,
    CharacterNotFoundError,
    ConversationCreationError,
    ErrorCode,
    StreamingError,
    TransportConnectionError,
    TransportNotConnectedError,
    TransportRequestError,
    ValidationErrorDetail,
    format_validation_errors,
)
from panelstream.models.event_models import (
    CharacterTurnEvent,
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    MultiCharacterCompleteEvent,
    MultiCharacterStartEvent,
    ProcessingEvent,
    ToolErrorEvent,
)
from panelstream.models.stream_models import (
    AnalysisResult,
    CharacterResponse,
    CharacterResponseStatus,
    CharacterResponseView,
    ConversationState,
    CurrentCharacter,
    InvocationSnapshot,
    InvocationState,
    PanelState,
    UsageMetrics,
)

__all__ = [
    "AnalysisResult",
    "CharacterCatalogError",
    "CharacterConfig",
    "CharacterNotFoundError",
    "CharacterResponse",
    "CharacterResponseStatus",
    "CharacterResponseView",
    "CharacterSummary",
    "CharacterTurnEvent",
    "ChunkEvent",
    "CompleteEvent",
    "ConversationCreationError",
    "ConversationState",
    "CurrentCharacter",
    "ErrorCode",
    "ErrorEvent",
    "InvocationSnapshot",
    "InvocationState",
    "MultiCharacterCompleteEvent",
    "MultiCharacterStartEvent",
    "PanelState",
    "ProcessingEvent",
    "StreamingError",
    "ToolErrorEvent",
    "TransportConnectionError",
    "TransportNotConnectedError",
    "TransportRequestError",
    "UsageMetrics",
    "ValidationErrorDetail",
    "format_validation_errors",
]
