"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging
import logging.handlers

from pathlib import Path

import pytest

from panelstream.core.constants import get_settings, reload_settings
from panelstream.utils.logger import StreamLogger, reset_panel_context, set_panel_context


class TestPreview:
    """Tests for content previews."""

    def test_hidden_by_default(self) -> None:
        """Test content is hidden unless content logging is enabled."""
        assert StreamLogger("panelstream.test").preview("secret draft") == "[HIDDEN]"

    def test_redacted_when_enabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test enabled previews are truncated and redacted."""
        monkeypatch.setenv("PANELSTREAM_ENABLE_CONTENT_LOGGING", "true")
        reload_settings()
        stream_logger = StreamLogger("panelstream.test")

        assert stream_logger.preview("mail me at jane@example.com") == "mail me at [EMAIL]"
        assert stream_logger.preview("x" * 80) == "x" * 50 + "..."
        assert stream_logger.preview(None) == ""


class TestStreamLogger:
    """Tests for record enrichment and file output."""

    def test_records_carry_session_and_panel(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test records include the session id and the bound panel."""
        stream_logger = StreamLogger("panelstream.test")

        token = set_panel_context("headline_analyzer")
        try:
            with caplog.at_level(logging.INFO, logger="panelstream.test"):
                stream_logger.info("joined")
        finally:
            reset_panel_context(token)

        record = caplog.records[-1]
        assert record.session_id == stream_logger.session_id
        assert record.panel_id == "headline_analyzer"

    def test_log_transition(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test transitions are logged at debug level with structured fields."""
        stream_logger = StreamLogger("panelstream.test")

        with caplog.at_level(logging.DEBUG, logger="panelstream.test"):
            stream_logger.log_transition("invocation", "idle", "analyzing", conversation_id="c-1", tool_name="x")

        record = caplog.records[-1]
        assert record.levelno == logging.DEBUG
        assert record.getMessage() == "invocation: idle -> analyzing [tool=x] [conversation=c-1]"
        assert record.to_state == "analyzing"

    def test_errors_written_as_json(self) -> None:
        """Test errors are written to errors.jsonl."""
        stream_logger = StreamLogger("panelstream.jsontest")

        stream_logger.error("Tool error", conversation_id="c-9")
        for handler in stream_logger.logger.handlers:
            handler.flush()

        lines = (get_settings().log_dir / "errors.jsonl").read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[-1])
        assert entry["message"] == "Tool error"
        assert entry["conversation_id"] == "c-9"
        assert entry["levelname"] == "ERROR"

    def test_unavailable_log_dir_falls_back_to_console(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test an unusable log directory disables the JSON file handler instead of raising."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        monkeypatch.setenv("PANELSTREAM_LOG_DIR", str(blocker / "logs"))
        reload_settings()
        stream_logger = StreamLogger("panelstream.readonly")

        stream_logger.error("still logged")
        stream_logger.log_transition("invocation", "idle", "analyzing")

        handlers = stream_logger.logger.handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], logging.handlers.RotatingFileHandler)
