"""
Conversation event router.

Keeps one subscriber list per conversation and delivers the four router event
kinds (chunk, complete, tool_error, error) to it. Subscribers may declare the
tool names they handle; tool-scoped events for other tools are dropped for
them, generic errors are always delivered.
"""

from __future__ import annotations

import dataclasses

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from panelstream.core.constants import (
    CONVERSATION_EVENT_KINDS,
    EVENT_CHUNK,
    EVENT_COMPLETE,
    EVENT_ERROR,
    EVENT_TOOL_ERROR,
    TOOL_SCOPED_EVENTS,
)
from panelstream.integrations.transport import Unsubscribe
from panelstream.models.event_models import (
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    ProcessingEvent,
    ToolErrorEvent,
)
from panelstream.models.stream_models import ConversationState
from panelstream.utils.logger import logger

ConversationEvent = ChunkEvent | CompleteEvent | ToolErrorEvent | ErrorEvent
ConversationEventHandler = Callable[[Any], None]


@dataclass(eq=False)
class _Subscription:
    kind: str
    handler: ConversationEventHandler
    supported_tools: frozenset[str] | None = None

    def accepts(self, kind: str, tool_name: str | None) -> bool:
        if kind != self.kind:
            return False
        if self.supported_tools is None or kind not in TOOL_SCOPED_EVENTS:
            return True
        return tool_name in self.supported_tools


class ConversationEventRouter:
    """Routes conversation-scoped events to scoped subscribers.

    One router is shared by every controller of a StreamingConnection. All
    mutation happens on the event loop thread.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._states: dict[str, ConversationState] = {}

    # ------------------------------------------------------------------
    # Conversation bookkeeping
    # ------------------------------------------------------------------

    def register_conversation(
        self,
        conversation_id: str,
        character_id: str | None = None,
        feature: str | None = None,
    ) -> None:
        """Start tracking a conversation (no-op for known ids apart from filling blanks)."""
        state = self._states.get(conversation_id)
        if state is None:
            self._states[conversation_id] = ConversationState(
                conversation_id=conversation_id,
                character_id=character_id,
                feature=feature,
            )
            logger.debug(f"Registered conversation {conversation_id}", conversation_id=conversation_id)
            return

        if character_id and not state.character_id:
            state.character_id = character_id
        if feature and not state.feature:
            state.feature = feature

    def get_conversation_state(self, conversation_id: str) -> ConversationState | None:
        """Return a copy of the conversation's bookkeeping, or None if unknown."""
        state = self._states.get(conversation_id)
        return dataclasses.replace(state) if state is not None else None

    @property
    def conversation_ids(self) -> list[str]:
        return list(self._states)

    def clear_conversation(self, conversation_id: str) -> None:
        """Drop the conversation's state and every subscription to it."""
        self._states.pop(conversation_id, None)
        dropped = self._subscriptions.pop(conversation_id, [])
        logger.debug(
            f"Cleared conversation {conversation_id} ({len(dropped)} subscriptions dropped)",
            conversation_id=conversation_id,
        )

    def clear_all(self) -> None:
        self._states.clear()
        self._subscriptions.clear()

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._subscriptions.get(conversation_id, ()))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_conversation_event(
        self,
        conversation_id: str,
        kind: str,
        handler: ConversationEventHandler,
        supported_tools: Iterable[str] | None = None,
    ) -> Unsubscribe:
        """Subscribe to one event kind of a conversation.

        Args:
            conversation_id: Conversation to listen to
            kind: One of chunk, complete, tool_error, error
            handler: Called with the dispatch event model
            supported_tools: When given, tool-scoped events for other tools are not delivered

        Returns:
            Idempotent unsubscribe callable
        """
        if kind not in CONVERSATION_EVENT_KINDS:
            raise ValueError(f"Unknown conversation event kind: {kind}")

        subscription = _Subscription(
            kind=kind,
            handler=handler,
            supported_tools=frozenset(supported_tools) if supported_tools is not None else None,
        )
        self._subscriptions.setdefault(conversation_id, []).append(subscription)

        def unsubscribe() -> None:
            subscriptions = self._subscriptions.get(conversation_id)
            if not subscriptions or subscription not in subscriptions:
                return
            subscriptions.remove(subscription)
            if not subscriptions:
                del self._subscriptions[conversation_id]

        return unsubscribe

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def note_processing(self, event: ProcessingEvent) -> None:
        """Record that the server accepted a request for the conversation."""
        state = self._states.get(event.conversation_id or "")
        if state is None:
            return
        state.is_processing = True
        state.current_message_id = event.message_id

    def note_streaming_start(self, event: ProcessingEvent) -> None:
        """Record that the server started streaming a response."""
        state = self._states.get(event.conversation_id or "")
        if state is None:
            return
        state.is_streaming = True
        state.stream_content = ""
        state.current_message_id = event.message_id

    def dispatch(self, kind: str, event: ConversationEvent) -> int:
        """Deliver an event to the conversation's matching subscribers.

        A handler that raises is logged; delivery continues with the rest.

        Returns:
            Number of handlers the event was delivered to
        """
        conversation_id = event.conversation_id
        if not conversation_id:
            logger.debug(f"Dropping {kind} event without conversation id")
            return 0

        self._update_state(kind, event)

        tool_name = getattr(event, "tool_name", None)
        delivered = 0
        for subscription in list(self._subscriptions.get(conversation_id, ())):
            if not subscription.accepts(kind, tool_name):
                continue
            delivered += 1
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(
                    f"Conversation {kind} handler failed: {e}",
                    exc_info=True,
                    conversation_id=conversation_id,
                )

        if delivered == 0:
            logger.debug(
                f"No subscriber for {kind} on conversation {conversation_id} (tool={tool_name})",
                conversation_id=conversation_id,
            )
        return delivered

    def _update_state(self, kind: str, event: ConversationEvent) -> None:
        state = self._states.get(event.conversation_id or "")
        if state is None:
            return

        if kind == EVENT_CHUNK and isinstance(event, ChunkEvent):
            state.is_streaming = True
            state.stream_content = event.full_content
            state.last_chunk_index = event.chunk_index
            state.current_tool = event.tool_name
        elif kind == EVENT_COMPLETE and isinstance(event, CompleteEvent):
            state.is_streaming = False
            state.is_processing = False
            state.stream_content = ""
            state.last_response = event.full_response
            state.last_message_id = event.message_id
            state.last_tool = event.tool_name
        elif kind == EVENT_TOOL_ERROR and isinstance(event, ToolErrorEvent):
            state.is_streaming = False
            state.is_processing = False
            state.last_error = event.error_message
        elif kind == EVENT_ERROR and isinstance(event, ErrorEvent):
            state.is_streaming = False
            state.is_processing = False
            state.last_error = event.error


__all__ = ["ConversationEvent", "ConversationEventHandler", "ConversationEventRouter"]
