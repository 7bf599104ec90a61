"""Profile analysis and per-section optimization."""

from __future__ import annotations

from typing import Any, ClassVar

from panelstream.features.analysis import AIAnalysis, select_fields

TOOL_ANALYZE_PROFILE = "analyze_profile"
TOOL_OPTIMIZE_PROFILE_SECTION = "optimize_profile_section"

PROFILE_FIELDS = ("overall_score", "section_scores", "strengths", "improvements", "optimized_content")


def map_profile_analysis(data: Any) -> Any:
    return select_fields(data, PROFILE_FIELDS, list_fields=("strengths", "improvements"))


class ProfileAnalysis(AIAnalysis):
    SUPPORTED_TOOLS: ClassVar[tuple[str, ...]] = (TOOL_ANALYZE_PROFILE, TOOL_OPTIMIZE_PROFILE_SECTION)
    DEFAULT_PANEL_ID: ClassVar[str | None] = "profile_optimizer"

    map_structured_analysis = staticmethod(map_profile_analysis)

    async def analyze_profile(self, profile: dict[str, Any], platform: str = "linkedin", **extra: Any) -> str | None:
        return await self.invoke_tool(
            TOOL_ANALYZE_PROFILE, self._arguments({"profile": profile, "platform": platform}, extra)
        )

    async def optimize_profile_section(
        self,
        section: str,
        content: str,
        platform: str = "linkedin",
        **extra: Any,
    ) -> str | None:
        """Rewrite one profile section (e.g. "about", "experience")."""
        return await self.invoke_tool(
            TOOL_OPTIMIZE_PROFILE_SECTION,
            self._arguments({"section": section, "content": content, "platform": platform}, extra),
        )


__all__ = [
    "PROFILE_FIELDS",
    "TOOL_ANALYZE_PROFILE",
    "TOOL_OPTIMIZE_PROFILE_SECTION",
    "ProfileAnalysis",
    "map_profile_analysis",
]
