"""
Transport session contract consumed by the streaming layer.

The physical protocol is an implementation detail; the streaming layer only
needs named events in both directions, request-acceptance coroutines and a
connection flag.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

#: Handler for a raw inbound event payload
RawEventHandler = Callable[[dict[str, Any]], None]

#: Handler notified with the new connection state
ConnectionHandler = Callable[[bool], None]

#: Detaches a previously registered handler
Unsubscribe = Callable[[], None]


@runtime_checkable
class TransportSession(Protocol):
    """Single duplex connection shared by every panel of an application session."""

    @property
    def is_connected(self) -> bool:
        """Whether requests can currently be delivered."""
        ...

    async def create_conversation(
        self,
        character_id: str,
        panel_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create a server-side conversation and return its id.

        Raises:
            TransportNotConnectedError: If the connection is down
            ConversationCreationError: If the server rejects or never acknowledges the request
        """
        ...

    async def invoke_tool(
        self,
        conversation_id: str,
        character_id: str,
        tool_name: str,
        arguments: dict[str, Any],
    ) -> str:
        """Request a tool invocation; returns the tracking id. Results arrive as events."""
        ...

    async def send_message(self, conversation_id: str, character_id: str, message: str) -> str:
        """Send a follow-up message; returns the tracking id."""
        ...

    def cancel_request(self, conversation_id: str) -> None:
        """Ask the server to stop the active request. Fire-and-forget, never awaited."""
        ...

    async def join_panel(self, panel_id: str, conversation_id: str | None) -> None:
        """Ask the server to route the conversation's events to this panel."""
        ...

    async def leave_panel(self, panel_id: str) -> None:
        """Release server-side routing for the panel."""
        ...

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        """Send an arbitrary named event."""
        ...

    def on(self, event: str, handler: RawEventHandler) -> Unsubscribe:
        """Subscribe to an inbound named event."""
        ...

    def on_connection_change(self, handler: ConnectionHandler) -> Unsubscribe:
        """Subscribe to connect/disconnect notifications."""
        ...


__all__ = ["ConnectionHandler", "RawEventHandler", "TransportSession", "Unsubscribe"]
