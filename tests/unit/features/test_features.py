"""Tests for the feature wrappers."""

from __future__ import annotations

from typing import Any

import pytest

from panelstream.features import (
    AIAnalysis,
    HeadlineAnalysis,
    ProfileAnalysis,
    ProposalAnalysis,
    ViralPostAnalysis,
)
from panelstream.features.analysis import select_fields
from panelstream.features.headline import map_headline_analysis
from panelstream.features.profile import map_profile_analysis
from panelstream.models.stream_models import InvocationState
from panelstream.streaming.connection import StreamingConnection


class TestSelectFields:
    """Tests for structured result projection."""

    def test_projects_and_defaults(self) -> None:
        """Test unknown keys are dropped and missing list fields become empty lists."""
        result = select_fields({"score": 3, "noise": 1}, ("score", "tips", "label"), list_fields=("tips",))

        assert result == {"score": 3, "tips": [], "label": None}

    def test_non_mapping_passthrough(self) -> None:
        """Test non-mapping payloads are returned unchanged."""
        assert select_fields("plain text", ("score",)) == "plain text"

    def test_headline_mapper(self) -> None:
        """Test the headline mapper shape."""
        assert map_headline_analysis({"score": 72, "strengths": ["clear"]}) == {
            "score": 72,
            "strengths": ["clear"],
            "weaknesses": [],
            "improvements": [],
        }

    def test_profile_mapper(self) -> None:
        """Test the profile mapper shape."""
        mapped = map_profile_analysis({"overall_score": 80, "section_scores": {"about": 7}})

        assert mapped["overall_score"] == 80
        assert mapped["section_scores"] == {"about": 7}
        assert mapped["strengths"] == []
        assert mapped["optimized_content"] is None


class TestWrappers:
    """Tests for tool families, panels and typed calls."""

    @pytest.mark.parametrize(
        ("wrapper", "panel", "tools"),
        [
            (HeadlineAnalysis, "headline_analyzer", {"analyze_headline", "generate_headline"}),
            (ProfileAnalysis, "profile_optimizer", {"analyze_profile", "optimize_profile_section"}),
            (ProposalAnalysis, "proposal_wizard", {"analyze_proposal", "generate_proposal"}),
            (ViralPostAnalysis, "viral_post_generator", {"analyze_viral_post", "generate_viral_post"}),
        ],
    )
    def test_defaults(self, connection: StreamingConnection, wrapper: type[AIAnalysis], panel: str, tools: set) -> None:
        """Test each wrapper fixes its panel and tool set."""
        analysis = wrapper(connection, "char-1")

        assert analysis.panel_id == panel
        assert analysis.supported_tools == frozenset(tools)

    def test_generic_requires_panel(self, connection: StreamingConnection) -> None:
        """Test the generic wrapper needs an explicit panel."""
        with pytest.raises(ValueError, match="requires a panel_id"):
            AIAnalysis(connection, "char-1", supported_tools=["summarize"])

    @pytest.mark.asyncio
    async def test_generic_with_custom_tools(self, connection: StreamingConnection, fake_transport: Any) -> None:
        """Test the generic wrapper invokes caller-supplied tools with the identity mapper."""
        analysis = AIAnalysis(connection, "char-1", panel_id="summary", supported_tools=["summarize"])

        await analysis.invoke_tool("summarize", {"text": "x"})
        fake_transport.inject(
            "ai_streaming_complete",
            {"conversation_id": "conv-1", "tool_name": "summarize", "structured_analysis": {"summary": "short"}},
        )

        assert analysis.structured_analysis == {"summary": "short"}

    @pytest.mark.asyncio
    async def test_generate_headline_arguments(self, connection: StreamingConnection, fake_transport: Any) -> None:
        """Test optional arguments left as None are not sent."""
        analysis = HeadlineAnalysis(connection, "char-1")

        await analysis.generate_headline("data engineering", audience="recruiters")

        assert fake_transport.invocations[0]["tool_name"] == "generate_headline"
        assert fake_transport.invocations[0]["arguments"] == {
            "topic": "data engineering",
            "platform": "linkedin",
            "audience": "recruiters",
        }

    @pytest.mark.asyncio
    async def test_headline_scenario(self, connection: StreamingConnection, fake_transport: Any) -> None:
        """Test a headline analysis streams and completes with the mapped result."""
        analysis = HeadlineAnalysis(connection, "char-1")

        await analysis.analyze_headline("Senior Dev")
        assert analysis.state is InvocationState.ANALYZING

        fake_transport.inject(
            "ai_response_chunk",
            {"conversation_id": "conv-1", "tool_name": "analyze_headline", "full_content": "Score"},
        )
        assert analysis.is_streaming is True

        fake_transport.inject(
            "ai_streaming_complete",
            {
                "conversation_id": "conv-1",
                "tool_name": "analyze_headline",
                "full_response": "Score: 72",
                "structured_analysis": {"score": 72, "strengths": ["concise"], "raw_tokens": 9},
            },
        )

        assert analysis.state is InvocationState.COMPLETE
        assert analysis.structured_analysis == {
            "score": 72,
            "strengths": ["concise"],
            "weaknesses": [],
            "improvements": [],
        }

    @pytest.mark.asyncio
    async def test_proposal_and_profile_calls(self, connection: StreamingConnection, fake_transport: Any) -> None:
        """Test typed calls on separate panels share one connection without crosstalk."""
        proposal = ProposalAnalysis(connection, "char-1")
        profile = ProfileAnalysis(connection, "char-1")

        await proposal.analyze_proposal("I can help", "Need a data engineer")
        await profile.optimize_profile_section("about", "I build things")

        assert fake_transport.invocations[0]["arguments"]["platform"] == "upwork"
        assert fake_transport.invocations[1]["arguments"]["section"] == "about"
        assert proposal.conversation_id != profile.conversation_id

        fake_transport.inject(
            "ai_response_chunk",
            {"conversation_id": profile.conversation_id, "tool_name": "optimize_profile_section", "full_content": "x"},
        )

        assert profile.is_streaming is True
        assert proposal.is_streaming is False

    @pytest.mark.asyncio
    async def test_viral_post_call(self, connection: StreamingConnection, fake_transport: Any) -> None:
        """Test the viral post wrapper sends its tool."""
        analysis = ViralPostAnalysis(connection, "char-1")

        await analysis.analyze_viral_post("Hot take", platform="x")

        assert fake_transport.invocations[0]["tool_name"] == "analyze_viral_post"
        assert fake_transport.invocations[0]["arguments"] == {"post": "Hot take", "platform": "x"}
