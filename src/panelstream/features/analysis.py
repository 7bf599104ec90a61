"""
Generic AI analysis wrapper.

Feature wrappers subclass AIAnalysis, fixing the tool set, the default panel
and the structured-result mapper; everything else is the invocation
controller's behaviour.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

from panelstream.streaming.connection import StreamingConnection
from panelstream.streaming.invocation import (
    InvocationCallback,
    StreamingInvocationController,
    StructuredAnalysisMapper,
)


def select_fields(data: Any, fields: Iterable[str], list_fields: Iterable[str] = ()) -> Any:
    """Project a structured analysis onto ``fields``; list fields default to []."""
    if not isinstance(data, Mapping):
        return data
    list_fields = set(list_fields)
    return {name: data.get(name, [] if name in list_fields else None) for name in fields}


class AIAnalysis(StreamingInvocationController):
    """Invocation controller configured for one feature's tool family."""

    SUPPORTED_TOOLS: ClassVar[tuple[str, ...]] = ()
    DEFAULT_PANEL_ID: ClassVar[str | None] = None

    def __init__(
        self,
        connection: StreamingConnection,
        character_id: str,
        panel_id: str | None = None,
        supported_tools: Iterable[str] | None = None,
        structured_analysis_mapper: StructuredAnalysisMapper | None = None,
        *,
        metadata: Mapping[str, Any] | None = None,
        on_analysis_started: InvocationCallback | None = None,
        on_analysis_complete: InvocationCallback | None = None,
        on_streaming_started: InvocationCallback | None = None,
        on_streaming_chunk: InvocationCallback | None = None,
        on_error: InvocationCallback | None = None,
    ) -> None:
        resolved_panel = panel_id or self.DEFAULT_PANEL_ID
        if not resolved_panel:
            raise ValueError(f"{type(self).__name__} requires a panel_id")

        super().__init__(
            connection,
            character_id,
            resolved_panel,
            supported_tools if supported_tools is not None else self.SUPPORTED_TOOLS,
            structured_analysis_mapper or self.map_structured_analysis,
            metadata=metadata,
            on_analysis_started=on_analysis_started,
            on_analysis_complete=on_analysis_complete,
            on_streaming_started=on_streaming_started,
            on_streaming_chunk=on_streaming_chunk,
            on_error=on_error,
        )

    @staticmethod
    def map_structured_analysis(data: Any) -> Any:
        """Identity by default; feature wrappers narrow it."""
        return data

    @staticmethod
    def _arguments(required: Mapping[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
        arguments = {key: value for key, value in required.items() if value is not None}
        arguments.update(extra)
        return arguments


__all__ = ["AIAnalysis", "select_fields"]
