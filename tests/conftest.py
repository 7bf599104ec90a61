"""Shared test fixtures for the panelstream test suite.

Provides an in-memory transport that records every request and lets tests
inject server events, plus settings/logging isolation.
"""

from __future__ import annotations

import os

from collections import defaultdict
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from panelstream.core import constants
from panelstream.streaming.connection import StreamingConnection
from panelstream.utils import logger as logger_module

# ============================================================================
# Test Isolation: Settings and Logging
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point settings at a temporary log dir and drop cached settings/loggers between tests."""
    for key in list(os.environ):
        if key.startswith("PANELSTREAM_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PANELSTREAM_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(constants, "_get_env_files", lambda: [])

    constants._settings_manager.clear()
    logger_module.logger._logger = None

    yield

    constants._settings_manager.clear()
    logger_module.logger._logger = None


# ============================================================================
# Fake Transport
# ============================================================================


class FakeTransport:
    """In-memory TransportSession recording requests and replaying server events."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.created: list[dict[str, Any]] = []
        self.invocations: list[dict[str, Any]] = []
        self.messages: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self.joined: list[tuple[str, str | None]] = []
        self.left: list[str] = []
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.create_error: Exception | None = None
        self.invoke_error: Exception | None = None
        self.send_error: Exception | None = None
        self._handlers: dict[str, list[Callable[[dict[str, Any]], None]]] = defaultdict(list)
        self._connection_handlers: list[Callable[[bool], None]] = []
        self._conversation_counter = 0
        self._tracking_counter = 0

    @property
    def is_connected(self) -> bool:
        return self.connected

    def _next_tracking_id(self) -> str:
        self._tracking_counter += 1
        return f"track-{self._tracking_counter}"

    async def create_conversation(
        self,
        character_id: str,
        panel_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        if self.create_error is not None:
            raise self.create_error
        self._conversation_counter += 1
        conversation_id = f"conv-{self._conversation_counter}"
        self.created.append(
            {
                "character_id": character_id,
                "panel_id": panel_id,
                "metadata": metadata,
                "conversation_id": conversation_id,
            }
        )
        return conversation_id

    async def invoke_tool(
        self,
        conversation_id: str,
        character_id: str,
        tool_name: str,
        arguments: dict[str, Any],
    ) -> str:
        if self.invoke_error is not None:
            raise self.invoke_error
        tracking_id = self._next_tracking_id()
        self.invocations.append(
            {
                "conversation_id": conversation_id,
                "character_id": character_id,
                "tool_name": tool_name,
                "arguments": arguments,
                "tracking_id": tracking_id,
            }
        )
        return tracking_id

    async def send_message(self, conversation_id: str, character_id: str, message: str) -> str:
        if self.send_error is not None:
            raise self.send_error
        tracking_id = self._next_tracking_id()
        self.messages.append(
            {
                "conversation_id": conversation_id,
                "character_id": character_id,
                "message": message,
                "tracking_id": tracking_id,
            }
        )
        return tracking_id

    def cancel_request(self, conversation_id: str) -> None:
        self.cancelled.append(conversation_id)

    async def join_panel(self, panel_id: str, conversation_id: str | None) -> None:
        self.joined.append((panel_id, conversation_id))

    async def leave_panel(self, panel_id: str) -> None:
        self.left.append(panel_id)

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        self.emitted.append((event, data))

    def on(self, event: str, handler: Callable[[dict[str, Any]], None]) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def on_connection_change(self, handler: Callable[[bool], None]) -> Callable[[], None]:
        self._connection_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._connection_handlers:
                self._connection_handlers.remove(handler)

        return unsubscribe

    def inject(self, event: str, data: dict[str, Any]) -> None:
        """Deliver a server event as if it arrived on the wire."""
        for handler in list(self._handlers.get(event, ())):
            handler(data)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Connected in-memory transport."""
    return FakeTransport()


@pytest.fixture
def connection(fake_transport: FakeTransport) -> StreamingConnection:
    """StreamingConnection wired to the fake transport."""
    return StreamingConnection(fake_transport)
