"""
Handlers for multi-character session events.

These only concern the panel hosting the session, so they go to the panel
registry; the session controller listening on that panel consumes them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from panelstream.core.constants import (
    PANEL_EVENT_CHARACTER_TURN,
    PANEL_EVENT_MULTI_CHARACTER_COMPLETE,
    PANEL_EVENT_MULTI_CHARACTER_START,
    WS_EVENT_CHARACTER_TURN,
    WS_EVENT_MULTI_CHARACTER_COMPLETE,
    WS_EVENT_MULTI_CHARACTER_START,
)
from panelstream.models.event_models import (
    CharacterTurnPayload,
    MultiCharacterCompletePayload,
    MultiCharacterStartPayload,
)

from .base import WireEventHandler, parse_payload

if TYPE_CHECKING:
    from panelstream.streaming.panel_registry import PanelRegistry


def create_session_start_handler(registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(MultiCharacterStartPayload, WS_EVENT_MULTI_CHARACTER_START, data)
        if payload is None:
            return
        registry.dispatch(
            PANEL_EVENT_MULTI_CHARACTER_START,
            payload.to_event(),
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
        )

    return handle


def create_character_turn_handler(registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(CharacterTurnPayload, WS_EVENT_CHARACTER_TURN, data)
        if payload is None:
            return
        registry.dispatch(
            PANEL_EVENT_CHARACTER_TURN,
            payload.to_event(),
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
        )

    return handle


def create_session_complete_handler(registry: PanelRegistry) -> WireEventHandler:
    def handle(data: dict[str, Any]) -> None:
        payload = parse_payload(MultiCharacterCompletePayload, WS_EVENT_MULTI_CHARACTER_COMPLETE, data)
        if payload is None:
            return
        registry.dispatch(
            PANEL_EVENT_MULTI_CHARACTER_COMPLETE,
            payload.to_event(),
            panel_id=payload.panel_id,
            conversation_id=payload.conversation_id,
        )

    return handle


__all__ = [
    "create_character_turn_handler",
    "create_session_complete_handler",
    "create_session_start_handler",
]
