"""Tests for ConversationEventRouter.

Covers scoped subscriptions, tool-name isolation, error fan-out and
per-conversation bookkeeping.
"""

from __future__ import annotations

from typing import Any

import pytest

from panelstream.models.error_models import ValidationErrorDetail
from panelstream.models.event_models import (
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    ProcessingEvent,
    ToolErrorEvent,
)
from panelstream.streaming.router import ConversationEventRouter


class TestSubscriptions:
    """Tests for subscribe/unsubscribe."""

    def test_subscriber_receives_event(self) -> None:
        """Test a subscriber receives events for its conversation only."""
        router = ConversationEventRouter()
        received: list[Any] = []
        router.on_conversation_event("conv-1", "chunk", received.append)

        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1", full_content="a"))
        router.dispatch("chunk", ChunkEvent(conversation_id="conv-2", full_content="b"))

        assert [event.full_content for event in received] == ["a"]

    def test_unsubscribe_stops_delivery(self) -> None:
        """Test unsubscribe removes the handler and is idempotent."""
        router = ConversationEventRouter()
        received: list[Any] = []
        unsubscribe = router.on_conversation_event("conv-1", "complete", received.append)

        unsubscribe()
        unsubscribe()
        router.dispatch("complete", CompleteEvent(conversation_id="conv-1"))

        assert received == []
        assert router.subscriber_count("conv-1") == 0

    def test_unknown_kind_rejected(self) -> None:
        """Test subscribing to an unknown event kind raises."""
        router = ConversationEventRouter()

        with pytest.raises(ValueError, match="Unknown conversation event kind"):
            router.on_conversation_event("conv-1", "typing", lambda event: None)

    def test_kind_is_respected(self) -> None:
        """Test a chunk subscriber never sees completions."""
        router = ConversationEventRouter()
        received: list[Any] = []
        router.on_conversation_event("conv-1", "chunk", received.append)

        router.dispatch("complete", CompleteEvent(conversation_id="conv-1"))

        assert received == []

    def test_event_without_conversation_dropped(self) -> None:
        """Test events lacking a conversation id are not delivered."""
        router = ConversationEventRouter()

        assert router.dispatch("error", ErrorEvent(error="boom")) == 0


class TestToolIsolation:
    """Tests for supported-tools filtering."""

    def test_other_tool_events_filtered(self) -> None:
        """Test a profile subscriber never observes headline chunk/complete/tool_error events."""
        router = ConversationEventRouter()
        received: list[Any] = []
        for kind in ("chunk", "complete", "tool_error"):
            router.on_conversation_event("conv-1", kind, received.append, supported_tools=["analyze_profile"])

        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1", tool_name="generate_headline"))
        router.dispatch("complete", CompleteEvent(conversation_id="conv-1", tool_name="generate_headline"))
        router.dispatch("tool_error", ToolErrorEvent(conversation_id="conv-1", tool_name="generate_headline"))

        assert received == []

    def test_supported_tool_events_delivered(self) -> None:
        """Test events for a supported tool pass the filter."""
        router = ConversationEventRouter()
        received: list[Any] = []
        router.on_conversation_event("conv-1", "chunk", received.append, supported_tools=["analyze_profile"])

        delivered = router.dispatch("chunk", ChunkEvent(conversation_id="conv-1", tool_name="analyze_profile"))

        assert delivered == 1
        assert len(received) == 1

    def test_generic_error_reaches_filtered_subscribers(self) -> None:
        """Test generic errors are delivered regardless of the tool filter."""
        router = ConversationEventRouter()
        profile: list[Any] = []
        headline: list[Any] = []
        router.on_conversation_event("conv-1", "error", profile.append, supported_tools=["analyze_profile"])
        router.on_conversation_event("conv-1", "error", headline.append, supported_tools=["generate_headline"])

        router.dispatch("error", ErrorEvent(conversation_id="conv-1", error="connection lost"))

        assert len(profile) == 1
        assert len(headline) == 1

    def test_unfiltered_subscriber_sees_everything(self) -> None:
        """Test subscribers without a tool set receive every tool's events."""
        router = ConversationEventRouter()
        received: list[Any] = []
        router.on_conversation_event("conv-1", "chunk", received.append)

        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1", tool_name="generate_headline"))
        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1"))

        assert len(received) == 2

    def test_untagged_chunk_filtered_for_tool_subscribers(self) -> None:
        """Test chunks carrying no tool name do not reach tool-scoped subscribers."""
        router = ConversationEventRouter()
        received: list[Any] = []
        router.on_conversation_event("conv-1", "chunk", received.append, supported_tools=["analyze_profile"])

        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1", full_content="follow-up"))

        assert received == []


class TestHandlerFailures:
    """Tests for handler exception isolation."""

    def test_failing_handler_does_not_block_others(self) -> None:
        """Test a raising handler is logged and the remaining handlers still run."""
        router = ConversationEventRouter()
        received: list[Any] = []

        def broken(event: Any) -> None:
            raise RuntimeError("handler bug")

        router.on_conversation_event("conv-1", "error", broken)
        router.on_conversation_event("conv-1", "error", received.append)

        delivered = router.dispatch("error", ErrorEvent(conversation_id="conv-1", error="x"))

        assert delivered == 2
        assert len(received) == 1

    def test_unsubscribe_during_dispatch(self) -> None:
        """Test a handler may unsubscribe itself while being dispatched."""
        router = ConversationEventRouter()
        calls: list[str] = []
        unsubscribe_ref: list[Any] = []

        def once(event: Any) -> None:
            calls.append("once")
            unsubscribe_ref[0]()

        unsubscribe_ref.append(router.on_conversation_event("conv-1", "chunk", once))
        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1"))
        router.dispatch("chunk", ChunkEvent(conversation_id="conv-1"))

        assert calls == ["once"]


class TestConversationState:
    """Tests for per-conversation bookkeeping."""

    def test_register_and_snapshot(self) -> None:
        """Test registering a conversation exposes a copy of its state."""
        router = ConversationEventRouter()
        router.register_conversation("conv-1", character_id="char-1", feature="headline_analyzer")

        state = router.get_conversation_state("conv-1")
        assert state is not None
        assert state.character_id == "char-1"
        assert state.feature == "headline_analyzer"

        state.is_streaming = True
        fresh = router.get_conversation_state("conv-1")
        assert fresh is not None
        assert fresh.is_streaming is False

    def test_state_follows_stream(self) -> None:
        """Test processing, chunks and completion update the state."""
        router = ConversationEventRouter()
        router.register_conversation("conv-1")

        router.note_processing(ProcessingEvent(conversation_id="conv-1", message_id="msg-1"))
        router.dispatch(
            "chunk",
            ChunkEvent(conversation_id="conv-1", full_content="Hel", chunk_index=0, tool_name="analyze_headline"),
        )
        streaming = router.get_conversation_state("conv-1")
        assert streaming is not None
        assert streaming.is_processing is True
        assert streaming.is_streaming is True
        assert streaming.stream_content == "Hel"
        assert streaming.current_tool == "analyze_headline"
        assert streaming.current_message_id == "msg-1"

        router.dispatch(
            "complete",
            CompleteEvent(
                conversation_id="conv-1", full_response="Hello", message_id="msg-1", tool_name="analyze_headline"
            ),
        )
        done = router.get_conversation_state("conv-1")
        assert done is not None
        assert done.is_streaming is False
        assert done.is_processing is False
        assert done.stream_content == ""
        assert done.last_response == "Hello"
        assert done.last_tool == "analyze_headline"

    def test_tool_error_records_formatted_message(self) -> None:
        """Test tool errors store the field-joined validation message."""
        router = ConversationEventRouter()
        router.register_conversation("conv-1")

        router.dispatch(
            "tool_error",
            ToolErrorEvent(
                conversation_id="conv-1",
                tool_name="analyze_headline",
                validation_errors=[ValidationErrorDetail(field="headline", message="required")],
            ),
        )

        state = router.get_conversation_state("conv-1")
        assert state is not None
        assert state.last_error == "headline: required"

    def test_clear_conversation_drops_state_and_subscriptions(self) -> None:
        """Test clearing a conversation removes state and subscribers."""
        router = ConversationEventRouter()
        router.register_conversation("conv-1")
        router.on_conversation_event("conv-1", "chunk", lambda event: None)

        router.clear_conversation("conv-1")

        assert router.get_conversation_state("conv-1") is None
        assert router.subscriber_count("conv-1") == 0

    def test_clear_all(self) -> None:
        """Test clear_all forgets every conversation."""
        router = ConversationEventRouter()
        router.register_conversation("conv-1")
        router.register_conversation("conv-2")
        router.on_conversation_event("conv-2", "error", lambda event: None)

        router.clear_all()

        assert router.conversation_ids == []
        assert router.subscriber_count("conv-2") == 0
