"""
Multi-character session controller.

Coordinates several AI characters answering inside one conversation. Unlike
the invocation controller, events are keyed by ``(conversation_id,
character_id)``: every character owns a response slot cycling

    pending -> processing -> streaming -> complete | error

An error scoped to one character only marks that slot; the shared ``error``
field is set for every AI error and callers decide whether to abort.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from panelstream.core.constants import (
    ERROR_GENERIC,
    MULTI_CHARACTER_PANEL_PREFIX,
    PANEL_EVENT_AI_ERROR,
    PANEL_EVENT_CHARACTER_TURN,
    PANEL_EVENT_CHUNK,
    PANEL_EVENT_MULTI_CHARACTER_COMPLETE,
    PANEL_EVENT_MULTI_CHARACTER_START,
    PANEL_EVENT_PROCESSING,
    PANEL_EVENT_STREAMING_COMPLETE,
    WS_EMIT_ADD_CHARACTER,
    WS_EMIT_REQUEST_MULTI_CHARACTER,
)
from panelstream.integrations.transport import Unsubscribe
from panelstream.models.character_models import CharacterSummary
from panelstream.models.event_models import (
    AddCharacterRequest,
    CharacterTurnEvent,
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    MultiCharacterCompleteEvent,
    MultiCharacterSessionRequest,
    MultiCharacterStartEvent,
    ProcessingEvent,
)
from panelstream.models.stream_models import (
    SESSION_MODES,
    CharacterResponse,
    CharacterResponseStatus,
    CharacterResponseView,
    CurrentCharacter,
)
from panelstream.streaming.connection import StreamingConnection
from panelstream.utils.logger import logger

SessionListener = Callable[["MultiCharacterSessionController"], None]


class MultiCharacterSessionController:
    """Session state for one multi-character conversation panel."""

    def __init__(self, connection: StreamingConnection, conversation_id: str, panel_id: str | None = None) -> None:
        self.connection = connection
        self.conversation_id = conversation_id
        self.panel_id = panel_id or f"{MULTI_CHARACTER_PANEL_PREFIX}{conversation_id}"

        self.session_id: str | None = None
        self.mode: str | None = None
        self.characters: list[CharacterSummary] = []
        self.current_character: CurrentCharacter | None = None
        self.is_active = False
        self.round_number = 0
        self.error: str | None = None
        self._responses: dict[str, CharacterResponse] = {}

        self._unsubscribers: list[Unsubscribe] = []
        self._listeners: list[SessionListener] = []

    @property
    def is_attached(self) -> bool:
        return bool(self._unsubscribers)

    async def attach(self) -> bool:
        """Join the session panel and subscribe to its events.

        Returns:
            False if the panel could not be joined server-side (handlers stay registered)
        """
        registry = self.connection.registry
        if not self._unsubscribers:
            self._unsubscribers = [
                registry.on_panel_event(self.panel_id, PANEL_EVENT_MULTI_CHARACTER_START, self._handle_session_start),
                registry.on_panel_event(self.panel_id, PANEL_EVENT_CHARACTER_TURN, self._handle_character_turn),
                registry.on_panel_event(self.panel_id, PANEL_EVENT_PROCESSING, self._handle_processing),
                registry.on_panel_event(self.panel_id, PANEL_EVENT_CHUNK, self._handle_chunk),
                registry.on_panel_event(self.panel_id, PANEL_EVENT_STREAMING_COMPLETE, self._handle_complete),
                registry.on_panel_event(
                    self.panel_id, PANEL_EVENT_MULTI_CHARACTER_COMPLETE, self._handle_session_complete
                ),
                registry.on_panel_event(self.panel_id, PANEL_EVENT_AI_ERROR, self._handle_error),
            ]

        joined = await registry.join_panel(self.panel_id, self.conversation_id)
        if not joined:
            self.error = "Failed to setup multi-character conversation"
            self._notify()
        return joined

    async def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.connection.registry.leave_panel(self.panel_id)

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        """Observe session changes; the listener receives the controller."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def start_session(
        self,
        character_ids: Sequence[str],
        mode: str = "sequential",
        metadata: Mapping[str, Any] | None = None,
    ) -> bool:
        """Ask the server to run the characters under ``mode``.

        Refused (False) when disconnected, while a session is active or while
        any character is still streaming.
        """
        if mode not in SESSION_MODES:
            raise ValueError(f"Unknown session mode: {mode}")

        transport = self.connection.transport
        if not transport.is_connected or self.is_active or self.is_any_character_streaming():
            logger.error(
                "Cannot start multi-character session",
                conversation_id=self.conversation_id,
                connected=transport.is_connected,
                session_active=self.is_active,
            )
            return False

        request = MultiCharacterSessionRequest(
            conversation_id=self.conversation_id,
            character_ids=list(character_ids),
            mode=mode,
            panel_id=self.panel_id,
            metadata=dict(metadata or {}),
        )
        try:
            await transport.emit(WS_EMIT_REQUEST_MULTI_CHARACTER, request.model_dump())
        except Exception as e:
            logger.error(f"Failed to request multi-character session: {e}", conversation_id=self.conversation_id)
            return False

        logger.info(
            f"Requested {mode} session with {len(request.character_ids)} characters",
            conversation_id=self.conversation_id,
        )
        return True

    async def add_character(self, character_id: str) -> bool:
        transport = self.connection.transport
        if not transport.is_connected:
            return False

        request = AddCharacterRequest(conversation_id=self.conversation_id, character_id=character_id)
        try:
            await transport.emit(WS_EMIT_ADD_CHARACTER, request.model_dump())
        except Exception as e:
            logger.error(f"Failed to add character {character_id}: {e}", conversation_id=self.conversation_id)
            return False
        return True

    def reset(self) -> None:
        self.session_id = None
        self.mode = None
        self.characters = []
        self.current_character = None
        self.is_active = False
        self._responses = {}
        self.round_number = 0
        self.error = None
        self._notify()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def character_responses(self) -> dict[str, CharacterResponse]:
        return dict(self._responses)

    def get_character_response(self, character_id: str) -> CharacterResponse | None:
        return self._responses.get(character_id)

    def get_all_responses(self) -> list[CharacterResponseView]:
        names = {character.id: character.name for character in self.characters}
        return [
            CharacterResponseView(
                character_id=character_id,
                character_name=names.get(character_id) or "Unknown",
                status=response.status,
                content=response.content,
                tracking_id=response.tracking_id,
                metrics=response.metrics,
                error=response.error,
            )
            for character_id, response in self._responses.items()
        ]

    def is_any_character_streaming(self) -> bool:
        return any(response.is_active for response in self._responses.values())

    # ------------------------------------------------------------------
    # Panel events
    # ------------------------------------------------------------------

    def _owns(self, conversation_id: str | None) -> bool:
        return conversation_id is None or conversation_id == self.conversation_id

    def _slot(self, character_id: str) -> CharacterResponse:
        return self._responses.setdefault(character_id, CharacterResponse())

    def _set_status(self, character_id: str, status: CharacterResponseStatus) -> None:
        slot = self._slot(character_id)
        if slot.status is not status:
            logger.log_transition(
                f"character[{character_id}]",
                slot.status.value,
                status.value,
                conversation_id=self.conversation_id,
            )
        slot.status = status

    def _handle_session_start(self, event: MultiCharacterStartEvent) -> None:
        if not self._owns(event.conversation_id):
            return
        self.session_id = event.session_id
        self.mode = event.mode
        self.characters = list(event.characters)
        self.is_active = True
        self._responses = {}
        self.round_number = 0
        self.error = None
        logger.info(
            f"Multi-character session {event.session_id} started ({event.mode}, {len(self.characters)} characters)",
            conversation_id=self.conversation_id,
        )
        self._notify()

    def _handle_character_turn(self, event: CharacterTurnEvent) -> None:
        self.current_character = CurrentCharacter(id=event.character_id, name=event.character_name, order=event.order)
        logger.debug(f"Turn: {event.character_name or event.character_id}", conversation_id=self.conversation_id)
        self._notify()

    def _handle_processing(self, event: ProcessingEvent) -> None:
        if not event.character_id or not self._owns(event.conversation_id):
            return
        self._set_status(event.character_id, CharacterResponseStatus.PROCESSING)
        slot = self._slot(event.character_id)
        slot.content = ""
        slot.tracking_id = event.tracking_id
        self._notify()

    def _handle_chunk(self, event: ChunkEvent) -> None:
        if not event.character_id or not self._owns(event.conversation_id):
            return
        self._set_status(event.character_id, CharacterResponseStatus.STREAMING)
        self._slot(event.character_id).content = event.full_content
        self._notify()

    def _handle_complete(self, event: CompleteEvent) -> None:
        if not event.character_id or not self._owns(event.conversation_id):
            return
        slot = self._slot(event.character_id)
        self._set_status(event.character_id, CharacterResponseStatus.COMPLETE)
        if event.full_response is not None:
            slot.content = event.full_response
        slot.metrics = event.usage
        self._notify()

    def _handle_session_complete(self, event: MultiCharacterCompleteEvent) -> None:
        if not self._owns(event.conversation_id):
            return
        self.is_active = False
        self.round_number = event.round_number
        self.current_character = None
        logger.info(
            f"Multi-character session {event.session_id} complete (round {event.round_number})",
            conversation_id=self.conversation_id,
        )
        self._notify()

    def _handle_error(self, event: ErrorEvent) -> None:
        if not self._owns(event.conversation_id):
            return
        self.error = event.error or ERROR_GENERIC
        if event.character_id:
            self._set_status(event.character_id, CharacterResponseStatus.ERROR)
            self._slot(event.character_id).error = event.error
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Session listener failed: {e}", exc_info=True)


__all__ = ["MultiCharacterSessionController", "SessionListener"]
