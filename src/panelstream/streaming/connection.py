"""
Shared streaming context for one application session.

A StreamingConnection bundles the transport with the conversation router and
panel registry every controller of the session shares, and installs the wire
event handlers that feed them.
"""

from __future__ import annotations

from typing import Any

from panelstream.core.constants import Settings
from panelstream.integrations.event_handlers import build_event_handlers
from panelstream.integrations.transport import TransportSession, Unsubscribe
from panelstream.integrations.websocket_transport import WebSocketTransport
from panelstream.streaming.panel_registry import PanelRegistry
from panelstream.streaming.router import ConversationEventRouter
from panelstream.utils.logger import logger


class StreamingConnection:
    """Transport + router + registry, passed explicitly to every controller."""

    def __init__(
        self,
        transport: TransportSession,
        router: ConversationEventRouter | None = None,
        registry: PanelRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.router = router or ConversationEventRouter()
        self.registry = registry or PanelRegistry(transport)
        self._unsubscribers: list[Unsubscribe] = []
        self.install_handlers()

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **transport_kwargs: Any) -> StreamingConnection:
        """Create a connection over a WebSocketTransport configured from settings."""
        return cls(WebSocketTransport(settings=settings, **transport_kwargs))

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    def install_handlers(self) -> None:
        """(Re)register the wire event handlers on the transport."""
        self.remove_handlers()
        for event, handler in build_event_handlers(self.router, self.registry).items():
            self._unsubscribers.append(self.transport.on(event, handler))
        logger.debug(f"Installed {len(self._unsubscribers)} wire event handlers")

    def remove_handlers(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def connect(self) -> None:
        """Open the transport if it supports explicit connection management."""
        connect = getattr(self.transport, "connect", None)
        if connect is not None:
            await connect()

    async def close(self) -> None:
        """Leave every panel, drop router state and close the transport."""
        for panel_id in self.registry.panel_ids:
            await self.registry.leave_panel(panel_id)
        self.router.clear_all()
        self.remove_handlers()

        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()
        logger.info("Streaming connection closed")

    async def __aenter__(self) -> StreamingConnection:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["StreamingConnection"]
