"""
Handlers for single-response streaming events.

Each wire event is parsed once and fanned out to the conversation router
(conversation-scoped subscribers) and the panel registry (panel-scoped
subscribers and panel state).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from panelstream.core.constants import (
    EVENT_CHUNK,
    EVENT_COMPLETE,
    EVENT_ERROR,
    EVENT_TOOL_ERROR,
    PANEL_EVENT_AI_ERROR,
    PANEL_EVENT_CHUNK,
    PANEL_EVENT_PROCESSING,
    PANEL_EVENT_STREAMING_COMPLETE,
    PANEL_EVENT_STREAMING_START,
    WS_EVENT_AI_ERROR,
    WS_EVENT_AI_PROCESSING,
    WS_EVENT_AI_RESPONSE_CHUNK,
    WS_EVENT_AI_STREAMING_COMPLETE,
    WS_EVENT_AI_STREAMING_START,
    WS_EVENT_TOOL_ERROR,
)
from panelstream.models.event_models import (
    AIErrorPayload,
    ChunkPayload,
    ProcessingPayload,
    StreamingCompletePayload,
    ToolErrorPayload,
)
from panelstream.utils.logger import logger

from .base import WireEventHandler, parse_payload

if TYPE_CHECKING:
    from panelstream.streaming.panel_registry import PanelRegistry
    from panelstream.streaming.router import ConversationEventRouter


def create_processing_handler(router: ConversationEventRouter, registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(ProcessingPayload, WS_EVENT_AI_PROCESSING, data)
        if payload is None:
            return
        event = payload.to_event()
        router.note_processing(event)
        registry.dispatch(
            PANEL_EVENT_PROCESSING,
            event,
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
            tracking_id=payload.tracking_id,
        )

    return handle


def create_streaming_start_handler(router: ConversationEventRouter, registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(ProcessingPayload, WS_EVENT_AI_STREAMING_START, data)
        if payload is None:
            return
        event = payload.to_event()
        router.note_streaming_start(event)
        registry.dispatch(
            PANEL_EVENT_STREAMING_START,
            event,
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
            tracking_id=payload.tracking_id,
        )

    return handle


def create_chunk_handler(router: ConversationEventRouter, registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(ChunkPayload, WS_EVENT_AI_RESPONSE_CHUNK, data)
        if payload is None:
            return
        event = payload.to_event()
        router.dispatch(EVENT_CHUNK, event)
        registry.dispatch(
            PANEL_EVENT_CHUNK,
            event,
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
            tracking_id=payload.tracking_id,
        )

    return handle


def create_complete_handler(router: ConversationEventRouter, registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(StreamingCompletePayload, WS_EVENT_AI_STREAMING_COMPLETE, data)
        if payload is None:
            return
        event = payload.to_event()
        router.dispatch(EVENT_COMPLETE, event)
        registry.dispatch(
            PANEL_EVENT_STREAMING_COMPLETE,
            event,
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
            tracking_id=payload.tracking_id,
        )

    return handle


def create_tool_error_handler(router: ConversationEventRouter) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(ToolErrorPayload, WS_EVENT_TOOL_ERROR, data)
        if payload is None:
            return
        event = payload.to_event()
        logger.error(
            f"Tool error from {event.tool_name}: {event.error_message}",
            conversation_id=event.conversation_id,
            tool_name=event.tool_name,
        )
        router.dispatch(EVENT_TOOL_ERROR, event)

    return handle


def create_ai_error_handler(router: ConversationEventRouter, registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(AIErrorPayload, WS_EVENT_AI_ERROR, data)
        if payload is None:
            return
        event = payload.to_event()
        logger.error(f"AI error: {event.error}", conversation_id=event.conversation_id)
        if event.conversation_id:
            router.dispatch(EVENT_ERROR, event)
        registry.dispatch(
            PANEL_EVENT_AI_ERROR,
            event,
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
            tracking_id=payload.tracking_id,
        )

    return handle


__all__ = [
    "create_ai_error_handler",
    "create_chunk_handler",
    "create_complete_handler",
    "create_processing_handler",
    "create_streaming_start_handler",
    "create_tool_error_handler",
]
