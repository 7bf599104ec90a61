"""WebSocket transport session for the AI gateway.

Connects to the gateway with the ``websockets`` library, multiplexes every
conversation over one connection and dispatches inbound named events from a
background listener loop. Frames are JSON objects of the form
``{"event": <name>, "data": {...}}``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import uuid

from collections import defaultdict
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets

from websockets.asyncio.client import ClientConnection

from panelstream.core.constants import (
    WS_EMIT_CANCEL_RESPONSE,
    WS_EMIT_JOIN_PANEL,
    WS_EMIT_LEAVE_PANEL,
    WS_EMIT_MESSAGE_CONVERSATION,
    WS_EMIT_START_CONVERSATION,
    WS_EVENT_AI_ERROR,
    WS_EVENT_CONVERSATION_CREATED,
    Settings,
    get_settings,
)
from panelstream.integrations.transport import ConnectionHandler, RawEventHandler, Unsubscribe
from panelstream.models.error_models import (
    ConversationCreationError,
    ErrorCode,
    TransportConnectionError,
    TransportNotConnectedError,
    TransportRequestError,
)
from panelstream.models.event_models import (
    CancelResponseRequest,
    ConversationCreatedPayload,
    MessageConversationRequest,
    PanelRequest,
    StartConversationRequest,
    WireEnvelope,
)

logger = logging.getLogger(__name__)


def _with_token(url: str, token: str | None) -> str:
    """Append the bearer token as a ``token`` query parameter."""
    if not token:
        return url
    parts = urlsplit(url)
    query = f"{parts.query}&{urlencode({'token': token})}" if parts.query else urlencode({"token": token})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class WebSocketTransport:
    """TransportSession implementation over a single WebSocket connection.

    Request coroutines return once the frame is written (request acceptance);
    AI output arrives later through handlers registered with ``on``.
    """

    def __init__(self, settings: Settings | None = None, url: str | None = None, access_token: str | None = None):
        """Initialize the transport.

        Args:
            settings: Settings to read endpoint and timeouts from (defaults to get_settings())
            url: Override for settings.ws_url
            access_token: Override for settings.access_token
        """
        self.settings = settings or get_settings()
        self.url = url or self.settings.ws_url
        self.access_token = access_token if access_token is not None else self.settings.access_token
        self._ws: ClientConnection | None = None
        self._connected = False
        self._listen_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()
        self._create_lock = asyncio.Lock()
        self._pending_creation: asyncio.Future[str] | None = None
        self._handlers: dict[str, list[RawEventHandler]] = defaultdict(list)
        self._connection_handlers: list[ConnectionHandler] = []
        self._active_tracking_ids: dict[str, str] = {}
        self._background_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ws is not None

    async def connect(self) -> None:
        """Open the connection and start the listener loop.

        Raises:
            TransportConnectionError: If the connection cannot be established
        """
        if self.is_connected:
            return

        try:
            self._ws = await websockets.connect(
                _with_token(self.url, self.access_token),
                open_timeout=self.settings.connect_timeout,
            )
        except Exception as e:
            logger.error(f"WebSocket connection to {self.url} failed: {e}")
            raise TransportConnectionError(f"Failed to connect: {e}") from e

        self._listen_task = asyncio.create_task(self._listen_loop())
        self._set_connected(True)
        logger.info(f"WebSocket connected to {self.url}")

    async def close(self) -> None:
        """Stop the listener, fail pending requests and close the socket."""
        if self._listen_task:
            self._listen_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listen_task
            self._listen_task = None

        self._fail_pending(TransportNotConnectedError("Transport closed"))

        if self._ws:
            with contextlib.suppress(Exception):
                await self._ws.close()
            self._ws = None
            logger.info("WebSocket closed")

        self._set_connected(False)

    async def reconnect(self) -> None:
        """Close and reopen the connection with bounded, linearly backed-off retries.

        Raises:
            TransportConnectionError: If every attempt fails
        """
        await self.close()

        attempts = max(1, self.settings.reconnect_attempts)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                await self.connect()
                return
            except TransportConnectionError as e:
                last_error = e
                logger.warning(f"Reconnect attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.settings.reconnect_delay * attempt)

        raise TransportConnectionError(
            f"Reconnect failed after {attempts} attempts", code=ErrorCode.CONNECTION_LOST
        ) from last_error

    async def __aenter__(self) -> WebSocketTransport:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _set_connected(self, connected: bool) -> None:
        if self._connected == connected:
            return
        self._connected = connected
        for handler in list(self._connection_handlers):
            try:
                handler(connected)
            except Exception as e:
                logger.warning(f"Connection handler error: {e}")

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _listen_loop(self) -> None:
        """Receive frames and dispatch them until the connection drops."""
        if not self._ws:
            return

        try:
            async for message in self._ws:
                self._handle_frame(message)
        except asyncio.CancelledError:
            raise
        except websockets.ConnectionClosed as e:
            logger.info(f"WebSocket closed by server: {e}")
        except Exception as e:
            logger.error(f"Listen loop error: {e}")

        self._fail_pending(TransportNotConnectedError("Connection lost", code=ErrorCode.CONNECTION_LOST))
        self._set_connected(False)

    def _handle_frame(self, message: str | bytes) -> None:
        try:
            frame = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Received invalid JSON frame")
            return

        if not isinstance(frame, dict) or "event" not in frame:
            logger.debug(f"Ignoring frame without event name: {frame!r:.100}")
            return

        event = str(frame["event"])
        data = frame.get("data") or {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {event} frame with non-object data")
            return

        self._resolve_creation(event, data)
        self.dispatch(event, data)

    def _resolve_creation(self, event: str, data: dict[str, Any]) -> None:
        """Complete an outstanding create_conversation handshake."""
        future = self._pending_creation
        if future is None or future.done():
            return

        if event == WS_EVENT_CONVERSATION_CREATED:
            try:
                payload = ConversationCreatedPayload.model_validate(data)
            except ValueError as e:
                future.set_exception(ConversationCreationError(f"Malformed conversation_created: {e}"))
                return
            future.set_result(payload.conversation_id)
        elif event == WS_EVENT_AI_ERROR and not data.get("conversation_id"):
            message = data.get("message") or data.get("error") or "Failed to create conversation"
            logger.error(f"Backend rejected conversation creation: {message}")
            future.set_exception(ConversationCreationError(str(message)))

    def dispatch(self, event: str, data: dict[str, Any]) -> None:
        """Deliver an inbound event to its handlers; handler failures are logged and isolated."""
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(data)
            except Exception as e:
                logger.error(f"Handler for {event} failed: {e}", exc_info=True)

    def on(self, event: str, handler: RawEventHandler) -> Unsubscribe:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers[event].remove(handler)

        return unsubscribe

    def on_connection_change(self, handler: ConnectionHandler) -> Unsubscribe:
        self._connection_handlers.append(handler)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._connection_handlers.remove(handler)

        return unsubscribe

    def _fail_pending(self, error: Exception) -> None:
        future = self._pending_creation
        if future is not None and not future.done():
            future.set_exception(error)
        self._pending_creation = None

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        """Write a named event frame.

        Raises:
            TransportNotConnectedError: If the connection is down
            TransportRequestError: If the frame cannot be written
        """
        if not self.is_connected or self._ws is None:
            raise TransportNotConnectedError()

        frame = WireEnvelope(event=event, data=data).to_json()
        try:
            async with self._write_lock:
                await self._ws.send(frame)
        except websockets.ConnectionClosed as e:
            self._set_connected(False)
            raise TransportNotConnectedError("Connection lost", code=ErrorCode.CONNECTION_LOST) from e
        except Exception as e:
            raise TransportRequestError(f"Failed to send {event}: {e}") from e

    async def create_conversation(
        self,
        character_id: str,
        panel_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        if not self.is_connected:
            raise TransportNotConnectedError()

        # Acknowledgements carry no correlation id, so creations are serialized
        async with self._create_lock:
            loop = asyncio.get_running_loop()
            future: asyncio.Future[str] = loop.create_future()
            self._pending_creation = future
            request = StartConversationRequest(character_id=character_id, feature=panel_id, metadata=metadata or {})
            try:
                await self.emit(WS_EMIT_START_CONVERSATION, request.model_dump())
                conversation_id = await asyncio.wait_for(future, timeout=self.settings.conversation_create_timeout)
            except asyncio.TimeoutError:
                raise ConversationCreationError(
                    "Conversation creation timeout", code=ErrorCode.CONVERSATION_CREATE_TIMEOUT
                ) from None
            finally:
                if self._pending_creation is future:
                    self._pending_creation = None

        logger.info(f"Conversation {conversation_id} created for character {character_id}")
        return conversation_id

    async def _send_conversation_message(self, request: MessageConversationRequest) -> str:
        self._active_tracking_ids[request.conversation_id] = request.tracking_id
        try:
            await self.emit(WS_EMIT_MESSAGE_CONVERSATION, request.model_dump(exclude_none=True))
        except Exception:
            self._active_tracking_ids.pop(request.conversation_id, None)
            raise
        return request.tracking_id

    async def invoke_tool(
        self,
        conversation_id: str,
        character_id: str,
        tool_name: str,
        arguments: dict[str, Any],
    ) -> str:
        request = MessageConversationRequest(
            conversation_id=conversation_id,
            character_id=character_id,
            tracking_id=str(uuid.uuid4()),
            ai_tool=tool_name,
            ai_tool_arguments=dict(arguments),
        )
        return await self._send_conversation_message(request)

    async def send_message(self, conversation_id: str, character_id: str, message: str) -> str:
        request = MessageConversationRequest(
            conversation_id=conversation_id,
            character_id=character_id,
            tracking_id=str(uuid.uuid4()),
            message=message,
        )
        return await self._send_conversation_message(request)

    def cancel_request(self, conversation_id: str) -> None:
        if not self.is_connected:
            logger.warning("Cannot cancel - WebSocket not connected")
            return

        tracking_id = self._active_tracking_ids.pop(conversation_id, None)
        if not tracking_id:
            logger.warning(f"No active tracking ID for conversation {conversation_id}")
            return

        payload = CancelResponseRequest(tracking_id=tracking_id).model_dump()
        task = asyncio.get_running_loop().create_task(self._emit_quietly(WS_EMIT_CANCEL_RESPONSE, payload))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _emit_quietly(self, event: str, data: dict[str, Any]) -> None:
        try:
            await self.emit(event, data)
        except Exception as e:
            logger.warning(f"Best-effort {event} failed: {e}")

    def active_tracking_id(self, conversation_id: str) -> str | None:
        return self._active_tracking_ids.get(conversation_id)

    async def join_panel(self, panel_id: str, conversation_id: str | None) -> None:
        request = PanelRequest(panel_id=panel_id, conversation_id=conversation_id)
        await self.emit(WS_EMIT_JOIN_PANEL, request.model_dump())

    async def leave_panel(self, panel_id: str) -> None:
        await self.emit(WS_EMIT_LEAVE_PANEL, PanelRequest(panel_id=panel_id).model_dump(exclude_none=True))


__all__ = ["WebSocketTransport"]
