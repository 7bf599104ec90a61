"""Tests for PanelRegistry."""

from __future__ import annotations

from typing import Any

import pytest

from panelstream.models.error_models import TransportRequestError
from panelstream.models.event_models import ChunkEvent, ErrorEvent, ProcessingEvent
from panelstream.streaming.panel_registry import PanelRegistry


class TestJoinLeave:
    """Tests for joining and leaving panels."""

    @pytest.mark.asyncio
    async def test_join_sends_once(self, fake_transport: Any) -> None:
        """Test joining the same panel/conversation pair twice only emits once."""
        registry = PanelRegistry(fake_transport)

        assert await registry.join_panel("headline_analyzer", "conv-1") is True
        assert await registry.join_panel("headline_analyzer", "conv-1") is True

        assert fake_transport.joined == [("headline_analyzer", "conv-1")]
        assert registry.panel_count == 1

    @pytest.mark.asyncio
    async def test_join_with_new_conversation_rejoins(self, fake_transport: Any) -> None:
        """Test moving a panel to another conversation re-joins server-side."""
        registry = PanelRegistry(fake_transport)
        await registry.join_panel("headline_analyzer", "conv-1")

        await registry.join_panel("headline_analyzer", "conv-2")

        assert fake_transport.joined[-1] == ("headline_analyzer", "conv-2")
        state = registry.get_panel_state("headline_analyzer")
        assert state is not None
        assert state.conversation_id == "conv-2"

    @pytest.mark.asyncio
    async def test_join_while_disconnected(self, fake_transport: Any) -> None:
        """Test a disconnected join returns False but keeps the mapping."""
        fake_transport.connected = False
        registry = PanelRegistry(fake_transport)

        assert await registry.join_panel("profile_optimizer", "conv-1") is False

        assert fake_transport.joined == []
        assert registry.find_panel_by_conversation_id("conv-1") == "profile_optimizer"

        fake_transport.connected = True
        assert await registry.join_panel("profile_optimizer", "conv-1") is True
        assert fake_transport.joined == [("profile_optimizer", "conv-1")]

    @pytest.mark.asyncio
    async def test_join_transport_failure(self, fake_transport: Any) -> None:
        """Test a transport error during join is reported as False."""

        async def failing_join(panel_id: str, conversation_id: str | None) -> None:
            raise TransportRequestError("write failed")

        fake_transport.join_panel = failing_join
        registry = PanelRegistry(fake_transport)

        assert await registry.join_panel("headline_analyzer", "conv-1") is False

    @pytest.mark.asyncio
    async def test_leave_releases_panel(self, fake_transport: Any) -> None:
        """Test leaving drops state, tracking ids and notifies the server."""
        registry = PanelRegistry(fake_transport)
        await registry.join_panel("headline_analyzer", "conv-1")
        registry.track("headline_analyzer", "track-1")

        await registry.leave_panel("headline_analyzer")

        assert fake_transport.left == ["headline_analyzer"]
        assert registry.get_panel_state("headline_analyzer") is None
        assert registry.find_panel_by_tracking_id("track-1") is None

    @pytest.mark.asyncio
    async def test_leave_unknown_panel(self, fake_transport: Any) -> None:
        """Test leaving an unknown panel is a no-op."""
        registry = PanelRegistry(fake_transport)

        await registry.leave_panel("missing")

        assert fake_transport.left == []


class TestPanelEvents:
    """Tests for panel-scoped dispatch."""

    @pytest.mark.asyncio
    async def test_pending_handlers_attach_on_join(self, fake_transport: Any) -> None:
        """Test handlers registered before the join receive events afterwards."""
        registry = PanelRegistry(fake_transport)
        received: list[Any] = []
        registry.on_panel_event("headline_analyzer", "chunk", received.append)

        await registry.join_panel("headline_analyzer", "conv-1")
        registry.dispatch("chunk", ChunkEvent(conversation_id="conv-1", full_content="x"), conversation_id="conv-1")

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_resolution_prefers_tracking_id(self, fake_transport: Any) -> None:
        """Test dispatch resolves by tracking id before panel and conversation ids."""
        registry = PanelRegistry(fake_transport)
        first: list[Any] = []
        second: list[Any] = []
        await registry.join_panel("first", "conv-1")
        await registry.join_panel("second", "conv-2")
        registry.on_panel_event("first", "chunk", first.append)
        registry.on_panel_event("second", "chunk", second.append)
        registry.track("second", "track-9")

        registry.dispatch(
            "chunk",
            ChunkEvent(conversation_id="conv-1", full_content="x"),
            panel_id="first",
            conversation_id="conv-1",
            tracking_id="track-9",
        )

        assert first == []
        assert len(second) == 1

    @pytest.mark.asyncio
    async def test_resolution_by_panel_then_conversation(self, fake_transport: Any) -> None:
        """Test panel id is used when no tracking id matches, then conversation id."""
        registry = PanelRegistry(fake_transport)
        await registry.join_panel("first", "conv-1")
        await registry.join_panel("second", "conv-2")

        assert registry.dispatch("chunk", ChunkEvent(), panel_id="second", conversation_id="conv-1") is True
        state = registry.get_panel_state("second")
        assert state is not None
        assert state.is_streaming is True

        assert registry.dispatch("chunk", ChunkEvent(), conversation_id="conv-1") is True
        assert registry.dispatch("chunk", ChunkEvent(), conversation_id="conv-unknown") is False

    @pytest.mark.asyncio
    async def test_state_follows_events(self, fake_transport: Any) -> None:
        """Test panel state tracks processing, chunks and errors."""
        registry = PanelRegistry(fake_transport)
        await registry.join_panel("chat", None)

        registry.dispatch(
            "processing",
            ProcessingEvent(conversation_id="conv-7", tracking_id="track-1"),
            panel_id="chat",
            conversation_id="conv-7",
            tracking_id="track-1",
        )
        state = registry.get_panel_state("chat")
        assert state is not None
        assert state.conversation_id == "conv-7"
        assert state.active_messages == 1

        registry.dispatch("chunk", ChunkEvent(full_content="Hello"), tracking_id="track-1")
        state = registry.get_panel_state("chat")
        assert state is not None
        assert state.current_content == "Hello"

        registry.dispatch("ai_error", ErrorEvent(error="boom"), tracking_id="track-1")
        state = registry.get_panel_state("chat")
        assert state is not None
        assert state.is_streaming is False
        assert state.last_error == "boom"
        assert state.active_messages == 0

    @pytest.mark.asyncio
    async def test_handler_failure_isolated(self, fake_transport: Any) -> None:
        """Test a raising panel handler does not prevent later handlers."""
        registry = PanelRegistry(fake_transport)
        received: list[Any] = []
        await registry.join_panel("chat", "conv-1")

        def broken(event: Any) -> None:
            raise RuntimeError("bug")

        registry.on_panel_event("chat", "chunk", broken)
        registry.on_panel_event("chat", "chunk", received.append)

        registry.dispatch("chunk", ChunkEvent(), panel_id="chat")

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, fake_transport: Any) -> None:
        """Test unsubscribing removes both pending and attached handlers."""
        registry = PanelRegistry(fake_transport)
        received: list[Any] = []
        unsubscribe = registry.on_panel_event("chat", "chunk", received.append)
        await registry.join_panel("chat", "conv-1")

        unsubscribe()
        registry.dispatch("chunk", ChunkEvent(), panel_id="chat")

        assert received == []
