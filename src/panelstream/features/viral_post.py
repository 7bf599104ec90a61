"""Social post virality analysis and generation."""

from __future__ import annotations

from typing import Any, ClassVar

from panelstream.features.analysis import AIAnalysis, select_fields

TOOL_ANALYZE_VIRAL_POST = "analyze_viral_post"
TOOL_GENERATE_VIRAL_POST = "generate_viral_post"

VIRAL_POST_FIELDS = ("viral_score", "hook_strength", "engagement_factors", "improvements")


def map_viral_post_analysis(data: Any) -> Any:
    return select_fields(data, VIRAL_POST_FIELDS, list_fields=("engagement_factors", "improvements"))


class ViralPostAnalysis(AIAnalysis):
    SUPPORTED_TOOLS: ClassVar[tuple[str, ...]] = (TOOL_ANALYZE_VIRAL_POST, TOOL_GENERATE_VIRAL_POST)
    DEFAULT_PANEL_ID: ClassVar[str | None] = "viral_post_generator"

    map_structured_analysis = staticmethod(map_viral_post_analysis)

    async def analyze_viral_post(self, post: str, platform: str = "linkedin", **extra: Any) -> str | None:
        return await self.invoke_tool(
            TOOL_ANALYZE_VIRAL_POST, self._arguments({"post": post, "platform": platform}, extra)
        )

    async def generate_viral_post(
        self,
        topic: str,
        platform: str = "linkedin",
        tone: str | None = None,
        **extra: Any,
    ) -> str | None:
        return await self.invoke_tool(
            TOOL_GENERATE_VIRAL_POST,
            self._arguments({"topic": topic, "platform": platform, "tone": tone}, extra),
        )


__all__ = [
    "TOOL_ANALYZE_VIRAL_POST",
    "TOOL_GENERATE_VIRAL_POST",
    "VIRAL_POST_FIELDS",
    "ViralPostAnalysis",
    "map_viral_post_analysis",
]
