"""Tests for wire event handlers."""

from __future__ import annotations

from unittest.mock import Mock

from panelstream.integrations.event_handlers import build_event_handlers, parse_payload
from panelstream.models.event_models import ChunkEvent, ChunkPayload, ErrorEvent, ToolErrorEvent


def make_handlers() -> tuple[dict, Mock, Mock]:
    router = Mock()
    registry = Mock()
    return build_event_handlers(router, registry), router, registry


class TestBuildEventHandlers:
    """Tests for the handler registry."""

    def test_covers_all_wire_events(self) -> None:
        """Test every inbound stream and session event has a handler."""
        handlers, _, _ = make_handlers()

        assert set(handlers) == {
            "ai_processing",
            "ai_streaming_start",
            "ai_response_chunk",
            "ai_streaming_complete",
            "tool_error",
            "ai_error",
            "multi_character_session_start",
            "character_turn",
            "multi_character_session_complete",
        }

    def test_chunk_fans_out(self) -> None:
        """Test chunks reach both router and registry with routing keys."""
        handlers, router, registry = make_handlers()

        handlers["ai_response_chunk"](
            {"conversation_id": "c-1", "panel_id": "p", "tracking_id": "t", "chunk": "lo", "full_content": "Hello"}
        )

        kind, event = router.dispatch.call_args.args
        assert kind == "chunk"
        assert isinstance(event, ChunkEvent)
        assert event.full_content == "Hello"
        assert registry.dispatch.call_args.kwargs == {"panel_id": "p", "conversation_id": "c-1", "tracking_id": "t"}

    def test_tool_error_router_only(self) -> None:
        """Test tool errors are routed by conversation only."""
        handlers, router, registry = make_handlers()

        handlers["tool_error"]({"conversation_id": "c-1", "tool_name": "analyze_profile", "message": "bad input"})

        kind, event = router.dispatch.call_args.args
        assert kind == "tool_error"
        assert isinstance(event, ToolErrorEvent)
        assert event.error_message == "bad input"
        registry.dispatch.assert_not_called()

    def test_ai_error_without_conversation(self) -> None:
        """Test an AI error without a conversation only reaches panels."""
        handlers, router, registry = make_handlers()

        handlers["ai_error"]({"panel_id": "p", "error": "overloaded"})

        router.dispatch.assert_not_called()
        event = registry.dispatch.call_args.args[1]
        assert isinstance(event, ErrorEvent)
        assert event.error == "overloaded"

    def test_processing_notes_router(self) -> None:
        """Test processing events update router state and the panel."""
        handlers, router, registry = make_handlers()

        handlers["ai_processing"]({"conversation_id": "c-1", "message_id": 5})

        router.note_processing.assert_called_once()
        assert router.note_processing.call_args.args[0].message_id == "5"
        assert registry.dispatch.call_args.args[0] == "processing"

    def test_session_events_go_to_registry(self) -> None:
        """Test multi-character events are panel scoped."""
        handlers, router, registry = make_handlers()

        handlers["character_turn"]({"panel_id": "multi_char_c-1", "character_id": "a", "order": 1})

        assert registry.dispatch.call_args.args[0] == "character_turn"
        assert registry.dispatch.call_args.kwargs["panel_id"] == "multi_char_c-1"
        router.dispatch.assert_not_called()

    def test_malformed_payload_dropped(self) -> None:
        """Test payloads failing validation never reach subscribers."""
        handlers, router, registry = make_handlers()

        handlers["character_turn"]({"panel_id": "p"})

        registry.dispatch.assert_not_called()


class TestParsePayload:
    """Tests for parse_payload."""

    def test_valid(self) -> None:
        """Test a valid payload is returned as a model."""
        payload = parse_payload(ChunkPayload, "ai_response_chunk", {"chunk": "x", "extra": 1})

        assert payload is not None
        assert payload.chunk == "x"

    def test_invalid(self) -> None:
        """Test an invalid payload is dropped."""
        assert parse_payload(ChunkPayload, "ai_response_chunk", {"chunk_index": "x"}) is None
