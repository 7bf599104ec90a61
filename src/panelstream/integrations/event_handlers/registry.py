"""
Unified wire event handler registry.

Builds the mapping of wire event names to handlers that a StreamingConnection
installs on its transport.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from panelstream.core.constants import (
    WS_EVENT_AI_ERROR,
    WS_EVENT_AI_PROCESSING,
    WS_EVENT_AI_RESPONSE_CHUNK,
    WS_EVENT_AI_STREAMING_COMPLETE,
    WS_EVENT_AI_STREAMING_START,
    WS_EVENT_CHARACTER_TURN,
    WS_EVENT_MULTI_CHARACTER_COMPLETE,
    WS_EVENT_MULTI_CHARACTER_START,
    WS_EVENT_TOOL_ERROR,
)

from .base import WireEventHandler
from .conversation_events import (
    create_ai_error_handler,
    create_chunk_handler,
    create_complete_handler,
    create_processing_handler,
    create_streaming_start_handler,
    create_tool_error_handler,
)
from .session_events import (
    create_character_turn_handler,
    create_session_complete_handler,
    create_session_start_handler,
)

if TYPE_CHECKING:
    from panelstream.streaming.panel_registry import PanelRegistry
    from panelstream.streaming.router import ConversationEventRouter


def build_event_handlers(router: ConversationEventRouter, registry: PanelRegistry) -> dict[str, WireEventHandler]:
    """Build the complete registry of wire event handlers keyed by event name.

    Args:
        router: Receives conversation-scoped chunk/complete/tool_error/error events
        registry: Receives panel-scoped events, including multi-character session events

    Returns:
        Dictionary mapping wire event names to handler functions
    """
    return {
        WS_EVENT_AI_PROCESSING: create_processing_handler(router, registry),
        WS_EVENT_AI_STREAMING_START: create_streaming_start_handler(router, registry),
        WS_EVENT_AI_RESPONSE_CHUNK: create_chunk_handler(router, registry),
        WS_EVENT_AI_STREAMING_COMPLETE: create_complete_handler(router, registry),
        WS_EVENT_TOOL_ERROR: create_tool_error_handler(router),
        WS_EVENT_AI_ERROR: create_ai_error_handler(router, registry),
        WS_EVENT_MULTI_CHARACTER_START: create_session_start_handler(registry),
        WS_EVENT_CHARACTER_TURN: create_character_turn_handler(registry),
        WS_EVENT_MULTI_CHARACTER_COMPLETE: create_session_complete_handler(registry),
    }


__all__ = ["WireEventHandler", "build_event_handlers"]
