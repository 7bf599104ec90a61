"""Freelance proposal analysis and generation."""

from __future__ import annotations

from typing import Any, ClassVar

from panelstream.features.analysis import AIAnalysis, select_fields

TOOL_ANALYZE_PROPOSAL = "analyze_proposal"
TOOL_GENERATE_PROPOSAL = "generate_proposal"

PROPOSAL_FIELDS = ("score", "win_probability", "strengths", "weaknesses", "suggestions")


def map_proposal_analysis(data: Any) -> Any:
    return select_fields(data, PROPOSAL_FIELDS, list_fields=("strengths", "weaknesses", "suggestions"))


class ProposalAnalysis(AIAnalysis):
    SUPPORTED_TOOLS: ClassVar[tuple[str, ...]] = (TOOL_ANALYZE_PROPOSAL, TOOL_GENERATE_PROPOSAL)
    DEFAULT_PANEL_ID: ClassVar[str | None] = "proposal_wizard"

    map_structured_analysis = staticmethod(map_proposal_analysis)

    async def analyze_proposal(
        self,
        proposal: str,
        job_posting: str,
        platform: str = "upwork",
        **extra: Any,
    ) -> str | None:
        return await self.invoke_tool(
            TOOL_ANALYZE_PROPOSAL,
            self._arguments({"proposal": proposal, "job_posting": job_posting, "platform": platform}, extra),
        )

    async def generate_proposal(self, job_posting: str, platform: str = "upwork", **extra: Any) -> str | None:
        return await self.invoke_tool(
            TOOL_GENERATE_PROPOSAL, self._arguments({"job_posting": job_posting, "platform": platform}, extra)
        )


__all__ = [
    "PROPOSAL_FIELDS",
    "TOOL_ANALYZE_PROPOSAL",
    "TOOL_GENERATE_PROPOSAL",
    "ProposalAnalysis",
    "map_proposal_analysis",
]
