"""Headline analysis and generation."""

from __future__ import annotations

from typing import Any, ClassVar

from panelstream.features.analysis import AIAnalysis, select_fields

TOOL_ANALYZE_HEADLINE = "analyze_headline"
TOOL_GENERATE_HEADLINE = "generate_headline"

HEADLINE_FIELDS = ("score", "strengths", "weaknesses", "improvements")


def map_headline_analysis(data: Any) -> Any:
    return select_fields(data, HEADLINE_FIELDS, list_fields=("strengths", "weaknesses", "improvements"))


class HeadlineAnalysis(AIAnalysis):
    SUPPORTED_TOOLS: ClassVar[tuple[str, ...]] = (TOOL_ANALYZE_HEADLINE, TOOL_GENERATE_HEADLINE)
    DEFAULT_PANEL_ID: ClassVar[str | None] = "headline_analyzer"

    map_structured_analysis = staticmethod(map_headline_analysis)

    async def analyze_headline(self, headline: str, platform: str = "linkedin", **extra: Any) -> str | None:
        return await self.invoke_tool(
            TOOL_ANALYZE_HEADLINE, self._arguments({"headline": headline, "platform": platform}, extra)
        )

    async def generate_headline(
        self,
        topic: str,
        platform: str = "linkedin",
        tone: str | None = None,
        **extra: Any,
    ) -> str | None:
        return await self.invoke_tool(
            TOOL_GENERATE_HEADLINE,
            self._arguments({"topic": topic, "platform": platform, "tone": tone}, extra),
        )


__all__ = [
    "HEADLINE_FIELDS",
    "TOOL_ANALYZE_HEADLINE",
    "TOOL_GENERATE_HEADLINE",
    "HeadlineAnalysis",
    "map_headline_analysis",
]
