"""
Streaming invocation controller.

Drives one tool invocation at a time for a panel's conversation:

    IDLE -> ANALYZING -> STREAMING -> COMPLETE | ERROR

COMPLETE and ERROR go back to IDLE only through ``reset()``. ``reset()`` keeps
the conversation for follow-ups; ``clear_conversation()`` discards it so the
next invocation creates a new one.

Nothing raised by the transport escapes ``invoke_tool`` or
``send_follow_up_message``: failures become the ``error`` field plus the
optional ``on_error`` callback.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from panelstream.core.constants import (
    ERROR_INVOKE_FAILED,
    ERROR_NO_ACTIVE_CONVERSATION,
    ERROR_NOT_CONNECTED,
    ERROR_SEND_MESSAGE_FAILED,
    ERROR_UNSUPPORTED_TOOL,
    EVENT_CHUNK,
    EVENT_COMPLETE,
    EVENT_ERROR,
    EVENT_TOOL_ERROR,
)
from panelstream.integrations.transport import Unsubscribe
from panelstream.models.event_models import ChunkEvent, CompleteEvent, ErrorEvent, ToolErrorEvent
from panelstream.models.stream_models import (
    AnalysisResult,
    InvocationSnapshot,
    InvocationState,
    UsageMetrics,
)
from panelstream.streaming.connection import StreamingConnection
from panelstream.utils.logger import logger

StructuredAnalysisMapper = Callable[[Any], Any]
InvocationCallback = Callable[[dict[str, Any]], None]
SnapshotListener = Callable[[InvocationSnapshot], None]


class StreamingInvocationController:
    """Single-flight tool invocation state machine bound to one panel."""

    def __init__(
        self,
        connection: StreamingConnection,
        character_id: str,
        panel_id: str,
        supported_tools: Iterable[str],
        structured_analysis_mapper: StructuredAnalysisMapper | None = None,
        *,
        metadata: Mapping[str, Any] | None = None,
        on_analysis_started: InvocationCallback | None = None,
        on_analysis_complete: InvocationCallback | None = None,
        on_streaming_started: InvocationCallback | None = None,
        on_streaming_chunk: InvocationCallback | None = None,
        on_error: InvocationCallback | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            connection: Shared streaming context (transport, router, registry)
            character_id: AI character the conversation is created for
            panel_id: Stable id of the UI surface owning this controller
            supported_tools: Tool names this controller may invoke and listens to
            structured_analysis_mapper: Pure function shaping ``structured_analysis`` on completion
            metadata: Extra metadata sent with conversation creation
            on_analysis_started: Called once the conversation is ready, before the invoke is sent
            on_analysis_complete: Called with the analysis, usage and message id on completion
            on_streaming_started: Called after the transport accepted the invoke
            on_streaming_chunk: Called for every applied chunk
            on_error: Called with ``{"error": ...}`` whenever the controller enters ERROR
        """
        self.connection = connection
        self.character_id = character_id
        self.panel_id = panel_id
        self.supported_tools = frozenset(supported_tools)
        self.structured_analysis_mapper = structured_analysis_mapper
        self.metadata = dict(metadata or {})
        self._callbacks: dict[str, InvocationCallback | None] = {
            "on_analysis_started": on_analysis_started,
            "on_analysis_complete": on_analysis_complete,
            "on_streaming_started": on_streaming_started,
            "on_streaming_chunk": on_streaming_chunk,
            "on_error": on_error,
        }

        self._state = InvocationState.IDLE
        self._conversation_id: str | None = None
        self._tool_name: str | None = None
        self._tracking_id: str | None = None
        self._streaming_content = ""
        self._analysis: AnalysisResult | None = None
        self._structured_analysis: Any = None
        self._error: str | None = None
        self._metrics: UsageMetrics | None = None
        self._message_id: str | None = None

        # Bumped by reset(); an invoke resuming after an await under a stale epoch is abandoned
        self._epoch = 0
        self._unsubscribers: list[Unsubscribe] = []
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    # Read state
    # ------------------------------------------------------------------

    @property
    def transport(self) -> Any:
        return self.connection.transport

    @property
    def state(self) -> InvocationState:
        return self._state

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def tracking_id(self) -> str | None:
        return self._tracking_id

    @property
    def is_analyzing(self) -> bool:
        return self._state.is_active

    @property
    def is_streaming(self) -> bool:
        return self._state is InvocationState.STREAMING

    @property
    def streaming_content(self) -> str:
        return self._streaming_content

    @property
    def analysis(self) -> AnalysisResult | None:
        return self._analysis

    @property
    def structured_analysis(self) -> Any:
        return self._structured_analysis

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def metrics(self) -> UsageMetrics | None:
        return self._metrics

    @property
    def message_id(self) -> str | None:
        return self._message_id

    @property
    def is_connected(self) -> bool:
        return bool(self.transport.is_connected)

    def snapshot(self) -> InvocationSnapshot:
        return InvocationSnapshot(
            state=self._state,
            conversation_id=self._conversation_id,
            tool_name=self._tool_name,
            tracking_id=self._tracking_id,
            streaming_content=self._streaming_content,
            analysis=self._analysis,
            structured_analysis=self._structured_analysis,
            error=self._error,
            metrics=self._metrics,
            message_id=self._message_id,
            is_connected=self.is_connected,
        )

    def subscribe(self, listener: SnapshotListener) -> Unsubscribe:
        """Observe the controller; the listener receives a snapshot after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def invoke_tool(self, tool_name: str, arguments: Mapping[str, Any]) -> str | None:
        """Invoke a supported tool on this panel's conversation.

        Returns:
            The conversation id on acceptance, None if the call was refused or failed
        """
        if self._state.is_active:
            logger.debug(
                f"invoke_tool({tool_name}) ignored: {self._tool_name} already {self._state.value}",
                conversation_id=self._conversation_id,
                panel_id=self.panel_id,
            )
            return None

        if not self.is_connected:
            self._fail(ERROR_NOT_CONNECTED, tool_name=tool_name)
            return None

        if tool_name not in self.supported_tools:
            logger.error(f"Unsupported tool: {tool_name}", panel_id=self.panel_id)
            self._fail(ERROR_UNSUPPORTED_TOOL.format(tool_name=tool_name), tool_name=tool_name)
            return None

        self._clear_result()
        self._tool_name = tool_name
        self._transition(InvocationState.ANALYZING)
        epoch = self._epoch

        try:
            conversation_id = self._conversation_id
            if conversation_id is None:
                conversation_id = await self.transport.create_conversation(
                    self.character_id, self.panel_id, self.metadata
                )
                if epoch != self._epoch:
                    logger.info(f"Invocation of {tool_name} abandoned after reset", panel_id=self.panel_id)
                    return None
                self._adopt_conversation(conversation_id)

            await self.connection.registry.join_panel(self.panel_id, conversation_id)
            if epoch != self._epoch:
                return None

            self._fire("on_analysis_started", {"conversation_id": conversation_id, "tool_name": tool_name})

            tracking_id = await self.transport.invoke_tool(
                conversation_id, self.character_id, tool_name, dict(arguments)
            )
            if epoch != self._epoch:
                return None

            self._tracking_id = tracking_id
            self.connection.registry.track(self.panel_id, tracking_id)
            logger.info(
                f"Invoked {tool_name} (tracking: {tracking_id})",
                conversation_id=conversation_id,
                panel_id=self.panel_id,
            )
            self._fire("on_streaming_started", {"conversation_id": conversation_id, "tool_name": tool_name})
            self._notify()
            return conversation_id
        except Exception as e:
            if epoch != self._epoch:
                return None
            logger.error(f"Failed to invoke tool {tool_name}: {e}", panel_id=self.panel_id)
            self._fail(str(e) or ERROR_INVOKE_FAILED.format(tool_name=tool_name), tool_name=tool_name)
            return None

    async def send_follow_up_message(self, message: str) -> str | None:
        """Send free text on the existing conversation; bypasses the single-flight guard.

        Returns:
            The conversation id on acceptance, None otherwise
        """
        if self._conversation_id is None:
            self._set_error(ERROR_NO_ACTIVE_CONVERSATION)
            return None

        if not self.is_connected:
            self._set_error(ERROR_NOT_CONNECTED)
            return None

        conversation_id = self._conversation_id
        try:
            tracking_id = await self.transport.send_message(conversation_id, self.character_id, message)
        except Exception as e:
            logger.error(f"Failed to send follow-up: {e}", conversation_id=conversation_id)
            self._set_error(str(e) or ERROR_SEND_MESSAGE_FAILED)
            return None

        self._tracking_id = tracking_id
        self.connection.registry.track(self.panel_id, tracking_id)
        logger.info(f"Sent follow-up message {logger.preview(message)}", conversation_id=conversation_id)
        self._notify()
        return conversation_id

    def reset(self) -> None:
        """Cancel the active request (fire-and-forget) and return to IDLE, keeping the conversation."""
        if self._tracking_id and self._conversation_id:
            self.transport.cancel_request(self._conversation_id)

        self._epoch += 1
        self._clear_result()
        self._tracking_id = None
        self._tool_name = None
        self._transition(InvocationState.IDLE)

    def clear_conversation(self) -> None:
        """Reset, then discard the conversation; the next invoke creates a new one."""
        conversation_id = self._conversation_id
        self.reset()
        self._drop_handlers()
        self._conversation_id = None
        if conversation_id is not None:
            self.connection.router.clear_conversation(conversation_id)
            logger.info("Conversation cleared", conversation_id=conversation_id, panel_id=self.panel_id)
        self._notify()

    def set_conversation_id(self, conversation_id: str | None) -> None:
        """Restore a persisted conversation (or detach with None); handlers are re-registered immediately."""
        if conversation_id == self._conversation_id:
            return
        self._drop_handlers()
        self._conversation_id = None
        if conversation_id is not None:
            self._adopt_conversation(conversation_id)
        self._notify()

    async def close(self) -> None:
        """Tear down: cancel anything in flight, drop handlers and leave the panel."""
        if self._state.is_active:
            self.reset()
        self._drop_handlers()
        self._listeners.clear()
        await self.connection.registry.leave_panel(self.panel_id)

    # ------------------------------------------------------------------
    # Conversation events
    # ------------------------------------------------------------------

    def _adopt_conversation(self, conversation_id: str) -> None:
        """Bind the conversation and register router handlers in the same step."""
        self._conversation_id = conversation_id
        router = self.connection.router
        router.register_conversation(conversation_id, self.character_id, self.panel_id)
        self._drop_handlers()
        self._unsubscribers = [
            router.on_conversation_event(conversation_id, EVENT_CHUNK, self._handle_chunk, self.supported_tools),
            router.on_conversation_event(conversation_id, EVENT_COMPLETE, self._handle_complete, self.supported_tools),
            router.on_conversation_event(
                conversation_id, EVENT_TOOL_ERROR, self._handle_tool_error, self.supported_tools
            ),
            router.on_conversation_event(conversation_id, EVENT_ERROR, self._handle_error, self.supported_tools),
        ]

    def _drop_handlers(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _handle_chunk(self, event: ChunkEvent) -> None:
        if self._state is InvocationState.ANALYZING:
            self._tool_name = event.tool_name or self._tool_name
            self._transition(InvocationState.STREAMING)
        elif self._state is not InvocationState.STREAMING:
            logger.debug(f"Ignoring chunk {event.chunk_index} in state {self._state.value}")
            return

        # Server content is cumulative; replace, never append
        self._streaming_content = event.full_content
        self._fire(
            "on_streaming_chunk",
            {
                "chunk": event.chunk,
                "full_content": event.full_content,
                "chunk_index": event.chunk_index,
                "tool_name": event.tool_name,
            },
        )
        self._notify()

    def _handle_complete(self, event: CompleteEvent) -> None:
        if not self._state.is_active:
            logger.debug(f"Ignoring completion of {event.tool_name} in state {self._state.value}")
            return

        structured = event.structured_analysis
        if structured:
            if self.structured_analysis_mapper is not None:
                try:
                    structured = self.structured_analysis_mapper(structured)
                except Exception as e:
                    logger.error(f"Structured analysis mapper failed: {e}", exc_info=True)
                    self._fail(f"Failed to map structured analysis: {e}", tool_name=event.tool_name)
                    return
        else:
            structured = None

        self._structured_analysis = structured
        self._analysis = AnalysisResult(raw=event.full_response, structured=structured)
        self._metrics = None if event.usage.is_empty else event.usage
        self._message_id = event.message_id
        self._transition(InvocationState.COMPLETE)

        self._fire(
            "on_analysis_complete",
            {
                "analysis": self._analysis,
                "message_id": event.message_id,
                "usage": event.usage,
                "content_type": event.content_type,
                "tool_name": event.tool_name,
            },
        )

    def _handle_tool_error(self, event: ToolErrorEvent) -> None:
        self._fail(
            event.error_message,
            tool_name=event.tool_name,
            validation_errors=[detail.model_dump() for detail in event.validation_errors],
        )

    def _handle_error(self, event: ErrorEvent) -> None:
        self._fail(event.error or "", tool_name=None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clear_result(self) -> None:
        self._streaming_content = ""
        self._analysis = None
        self._structured_analysis = None
        self._error = None
        self._metrics = None
        self._message_id = None

    def _transition(self, new_state: InvocationState) -> None:
        old_state = self._state
        self._state = new_state
        logger.log_transition(
            "invocation",
            old_state.value,
            new_state.value,
            conversation_id=self._conversation_id,
            tool_name=self._tool_name,
            panel_id=self.panel_id,
        )
        self._notify()

    def _fail(self, message: str, tool_name: str | None, **extra: Any) -> None:
        self._error = message
        self._transition(InvocationState.ERROR)
        payload: dict[str, Any] = {"error": message}
        if tool_name is not None:
            payload["tool_name"] = tool_name
        payload.update(extra)
        self._fire("on_error", payload)

    def _set_error(self, message: str) -> None:
        """Surface an error without touching the invocation state (follow-up failures)."""
        self._error = message
        logger.warning(message, conversation_id=self._conversation_id, panel_id=self.panel_id)
        self._notify()
        self._fire("on_error", {"error": message})

    def _fire(self, name: str, payload: dict[str, Any]) -> None:
        callback = self._callbacks.get(name)
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"{name} callback failed: {e}", exc_info=True)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}", exc_info=True)


__all__ = [
    "InvocationCallback",
    "SnapshotListener",
    "StreamingInvocationController",
    "StructuredAnalysisMapper",
]
