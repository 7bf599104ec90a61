"""
Panel registry.

Maps each UI panel to the conversation it displays, asks the transport to
route that conversation's events to the panel, and delivers panel-scoped
events to subscribers. Events are resolved by tracking id first, then panel
id, then conversation id.
"""

from __future__ import annotations

import asyncio

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from panelstream.core.constants import (
    PANEL_EVENT_AI_ERROR,
    PANEL_EVENT_CHUNK,
    PANEL_EVENT_PROCESSING,
    PANEL_EVENT_STREAMING_COMPLETE,
    PANEL_EVENT_STREAMING_START,
)
from panelstream.integrations.transport import TransportSession, Unsubscribe
from panelstream.models.stream_models import PanelState
from panelstream.utils.logger import logger, reset_panel_context, set_panel_context

PanelEventHandler = Callable[[Any], None]


@dataclass
class _Panel:
    panel_id: str
    conversation_id: str | None = None
    is_streaming: bool = False
    current_content: str = ""
    last_error: str | None = None
    joined: bool = False
    tracking_ids: set[str] = field(default_factory=set)
    handlers: dict[str, list[PanelEventHandler]] = field(default_factory=dict)


class PanelRegistry:
    """Map UI panels to conversations and route panel-scoped events to them."""

    def __init__(self, transport: TransportSession) -> None:
        """Initialize the registry.

        Args:
            transport: Shared transport used to join/leave server-side panel routing
        """
        self.transport = transport
        self._panels: dict[str, _Panel] = {}
        self._pending_handlers: dict[str, dict[str, list[PanelEventHandler]]] = {}
        self._lock = asyncio.Lock()

    @property
    def panel_ids(self) -> list[str]:
        return list(self._panels)

    @property
    def panel_count(self) -> int:
        return len(self._panels)

    async def join_panel(self, panel_id: str, conversation_id: str | None) -> bool:
        """Register panel -> conversation and ask the transport to route it here.

        Idempotent: re-joining the same pair sends nothing. Never raises on a
        down connection; the mapping is kept and the call returns False.

        Returns:
            True if server-side routing is in place for the pair
        """
        async with self._lock:
            panel = self._panels.get(panel_id)
            if panel is None:
                panel = _Panel(panel_id=panel_id, conversation_id=conversation_id)
                self._panels[panel_id] = panel
                logger.debug(f"Created panel {panel_id} (total: {len(self._panels)})", panel_id=panel_id)
            elif panel.conversation_id == conversation_id and panel.joined:
                return True
            elif panel.conversation_id != conversation_id:
                logger.info(
                    f"Panel {panel_id} moved from conversation {panel.conversation_id} to {conversation_id}",
                    panel_id=panel_id,
                )
                panel.conversation_id = conversation_id
                panel.joined = False

            for event, handlers in self._pending_handlers.pop(panel_id, {}).items():
                panel.handlers.setdefault(event, []).extend(handlers)

            if not self.transport.is_connected:
                logger.warning(f"Cannot join panel {panel_id} - transport not connected", panel_id=panel_id)
                return False

            try:
                await self.transport.join_panel(panel_id, conversation_id)
            except Exception as e:
                logger.error(f"Failed to join panel {panel_id}: {e}", panel_id=panel_id)
                return False

            panel.joined = True
            logger.info(f"Joined panel {panel_id} (conversation: {conversation_id})", panel_id=panel_id)
            return True

    async def leave_panel(self, panel_id: str) -> None:
        """Unregister the panel, drop its tracking ids and handlers and release server routing."""
        async with self._lock:
            panel = self._panels.pop(panel_id, None)
            self._pending_handlers.pop(panel_id, None)
            if panel is None:
                logger.debug(f"Leave for unknown panel {panel_id} ignored", panel_id=panel_id)
                return

            if panel.joined and self.transport.is_connected:
                try:
                    await self.transport.leave_panel(panel_id)
                except Exception as e:
                    logger.warning(f"Failed to leave panel {panel_id}: {e}", panel_id=panel_id)

            logger.info(
                f"Left panel {panel_id} "
                f"({len(panel.tracking_ids)} tracking ids dropped, remaining: {len(self._panels)})",
                panel_id=panel_id,
            )

    def get_panel_state(self, panel_id: str) -> PanelState | None:
        panel = self._panels.get(panel_id)
        if panel is None:
            return None
        return PanelState(
            panel_id=panel.panel_id,
            conversation_id=panel.conversation_id,
            is_streaming=panel.is_streaming,
            current_content=panel.current_content,
            active_messages=len(panel.tracking_ids),
            last_error=panel.last_error,
        )

    def on_panel_event(self, panel_id: str, event: str, handler: PanelEventHandler) -> Unsubscribe:
        """Subscribe to a panel event. Handlers for unknown panels wait until it is joined."""
        panel = self._panels.get(panel_id)
        if panel is not None:
            panel.handlers.setdefault(event, []).append(handler)
        else:
            self._pending_handlers.setdefault(panel_id, {}).setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            for handlers_by_event in (
                self._panels[panel_id].handlers if panel_id in self._panels else {},
                self._pending_handlers.get(panel_id, {}),
            ):
                handlers = handlers_by_event.get(event)
                if handlers and handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    # ------------------------------------------------------------------
    # Tracking ids
    # ------------------------------------------------------------------

    def track(self, panel_id: str, tracking_id: str) -> None:
        panel = self._panels.get(panel_id)
        if panel is None:
            logger.warning(f"Cannot track {tracking_id} - panel {panel_id} not registered", panel_id=panel_id)
            return
        panel.tracking_ids.add(tracking_id)

    def untrack(self, tracking_id: str) -> None:
        panel = self.find_panel_by_tracking_id(tracking_id)
        if panel is not None:
            self._panels[panel].tracking_ids.discard(tracking_id)

    def find_panel_by_tracking_id(self, tracking_id: str | None) -> str | None:
        if not tracking_id:
            return None
        for panel in self._panels.values():
            if tracking_id in panel.tracking_ids:
                return panel.panel_id
        return None

    def find_panel_by_conversation_id(self, conversation_id: str | None) -> str | None:
        if not conversation_id:
            return None
        for panel in self._panels.values():
            if panel.conversation_id == conversation_id:
                return panel.panel_id
        return None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _resolve(self, panel_id: str | None, conversation_id: str | None, tracking_id: str | None) -> _Panel | None:
        resolved = self.find_panel_by_tracking_id(tracking_id)
        if resolved is None and panel_id in self._panels:
            resolved = panel_id
        if resolved is None:
            resolved = self.find_panel_by_conversation_id(conversation_id)
        return self._panels.get(resolved) if resolved is not None else None

    def dispatch(
        self,
        event: str,
        payload: Any,
        *,
        panel_id: str | None = None,
        conversation_id: str | None = None,
        tracking_id: str | None = None,
    ) -> bool:
        """Route a panel event by tracking id, then panel id, then conversation id.

        Returns:
            True if a registered panel received the event
        """
        panel = self._resolve(panel_id, conversation_id, tracking_id)
        if panel is None:
            logger.debug(
                f"No panel for {event} (panel={panel_id}, conversation={conversation_id}, tracking={tracking_id})"
            )
            return False

        self._apply(panel, event, payload, conversation_id, tracking_id)

        token = set_panel_context(panel.panel_id)
        try:
            for handler in list(panel.handlers.get(event, ())):
                try:
                    handler(payload)
                except Exception as e:
                    logger.error(f"Panel {event} handler failed: {e}", exc_info=True)
        finally:
            reset_panel_context(token)
        return True

    def _apply(
        self,
        panel: _Panel,
        event: str,
        payload: Any,
        conversation_id: str | None,
        tracking_id: str | None,
    ) -> None:
        if event == PANEL_EVENT_PROCESSING:
            if conversation_id and panel.conversation_id != conversation_id:
                logger.info(
                    f"Panel {panel.panel_id} adopted server conversation {conversation_id}",
                    panel_id=panel.panel_id,
                )
                panel.conversation_id = conversation_id
            if tracking_id:
                panel.tracking_ids.add(tracking_id)
            panel.is_streaming = True
            panel.current_content = ""
            panel.last_error = None
        elif event == PANEL_EVENT_STREAMING_START:
            panel.is_streaming = True
            panel.current_content = ""
        elif event == PANEL_EVENT_CHUNK:
            panel.is_streaming = True
            panel.current_content = getattr(payload, "full_content", panel.current_content)
        elif event == PANEL_EVENT_STREAMING_COMPLETE:
            panel.is_streaming = False
            panel.current_content = ""
            if tracking_id:
                panel.tracking_ids.discard(tracking_id)
        elif event == PANEL_EVENT_AI_ERROR:
            panel.is_streaming = False
            panel.current_content = ""
            panel.last_error = getattr(payload, "error", None)
            if tracking_id:
                panel.tracking_ids.discard(tracking_id)


__all__ = ["PanelEventHandler", "PanelRegistry"]
