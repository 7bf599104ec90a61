"""
Free-form chat with a single AI character.

Resolves the character through the catalog, owns one panel and one
conversation, and follows the conversation's streamed responses without any
tool filter.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from panelstream.core.constants import (
    ERROR_NOT_CONNECTED,
    ERROR_SEND_MESSAGE_FAILED,
    EVENT_CHUNK,
    EVENT_COMPLETE,
    EVENT_ERROR,
    EVENT_TOOL_ERROR,
)
from panelstream.integrations.character_catalog import CharacterCatalog
from panelstream.integrations.transport import Unsubscribe
from panelstream.models.character_models import CharacterConfig
from panelstream.models.error_models import StreamingError
from panelstream.models.event_models import ChunkEvent, CompleteEvent, ErrorEvent, ToolErrorEvent
from panelstream.models.stream_models import UsageMetrics
from panelstream.streaming.connection import StreamingConnection
from panelstream.utils.logger import logger

ChatListener = Callable[["AICharacterChat"], None]


class AICharacterChat:
    """Chat session bound to one AI character and one panel."""

    def __init__(
        self,
        connection: StreamingConnection,
        catalog: CharacterCatalog,
        character_id: str,
        panel_id: str | None = None,
    ) -> None:
        self.connection = connection
        self.catalog = catalog
        self.character_id = character_id
        self.panel_id = panel_id or f"character_{character_id}"

        self.character: CharacterConfig | None = None
        self.conversation_id: str | None = None
        self.is_loading = False
        self.is_streaming = False
        self.streaming_content = ""
        self.last_response: str | None = None
        self.message_id: str | None = None
        self.metrics: UsageMetrics | None = None
        self.error: str | None = None

        self._unsubscribers: list[Unsubscribe] = []
        self._listeners: list[ChatListener] = []

    async def load(self) -> CharacterConfig | None:
        """Fetch the character configuration (cached after the first success)."""
        if self.character is not None:
            return self.character

        self.is_loading = True
        try:
            self.character = await self.catalog.get_character(self.character_id)
        except StreamingError as e:
            logger.error(f"Failed to load AI character {self.character_id}: {e.message}")
            self.error = e.message
        finally:
            self.is_loading = False
        self._notify()
        return self.character

    def supports_tool(self, tool_name: str) -> bool:
        return self.character is not None and self.character.supports_tool(tool_name)

    def subscribe(self, listener: ChatListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def send_message(self, message: str, metadata: dict[str, Any] | None = None) -> str | None:
        """Send a message, creating the conversation on first use.

        Returns:
            The conversation id on acceptance, None otherwise
        """
        transport = self.connection.transport
        if not transport.is_connected:
            self._set_error(ERROR_NOT_CONNECTED)
            return None

        self.error = None
        try:
            conversation_id = self.conversation_id
            if conversation_id is None:
                conversation_id = await transport.create_conversation(self.character_id, self.panel_id, metadata or {})
                self._adopt_conversation(conversation_id)
            await self.connection.registry.join_panel(self.panel_id, conversation_id)
            tracking_id = await transport.send_message(conversation_id, self.character_id, message)
        except Exception as e:
            logger.error(f"Failed to send message to {self.character_id}: {e}")
            self._set_error(str(e) or ERROR_SEND_MESSAGE_FAILED)
            return None

        self.connection.registry.track(self.panel_id, tracking_id)
        self.is_streaming = True
        self.streaming_content = ""
        self._notify()
        return conversation_id

    def cancel(self) -> None:
        """Fire-and-forget cancellation of the in-flight response."""
        if self.conversation_id is not None and self.is_streaming:
            self.connection.transport.cancel_request(self.conversation_id)
        self.is_streaming = False
        self.streaming_content = ""
        self._notify()

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._listeners.clear()
        await self.connection.registry.leave_panel(self.panel_id)

    def _adopt_conversation(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        router = self.connection.router
        router.register_conversation(conversation_id, self.character_id, self.panel_id)
        self._unsubscribers = [
            router.on_conversation_event(conversation_id, EVENT_CHUNK, self._handle_chunk),
            router.on_conversation_event(conversation_id, EVENT_COMPLETE, self._handle_complete),
            router.on_conversation_event(conversation_id, EVENT_TOOL_ERROR, self._handle_tool_error),
            router.on_conversation_event(conversation_id, EVENT_ERROR, self._handle_error),
        ]

    def _handle_chunk(self, event: ChunkEvent) -> None:
        self.is_streaming = True
        self.streaming_content = event.full_content
        self._notify()

    def _handle_complete(self, event: CompleteEvent) -> None:
        self.is_streaming = False
        self.streaming_content = ""
        self.last_response = event.full_response
        self.message_id = event.message_id
        self.metrics = None if event.usage.is_empty else event.usage
        self._notify()

    def _handle_tool_error(self, event: ToolErrorEvent) -> None:
        self.is_streaming = False
        self._set_error(event.error_message)

    def _handle_error(self, event: ErrorEvent) -> None:
        self.is_streaming = False
        self._set_error(event.error or ERROR_SEND_MESSAGE_FAILED)

    def _set_error(self, message: str) -> None:
        self.error = message
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Chat listener failed: {e}", exc_info=True)


__all__ = ["AICharacterChat", "ChatListener"]
