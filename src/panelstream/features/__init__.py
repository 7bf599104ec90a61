"""
Feature Wrappers - Tool-Family Adapters over the Invocation Controller
======================================================================

Each wrapper fixes the supported tool set, a default panel id and the
structured-result mapper, and adds typed convenience calls.

Modules:
    analysis: AIAnalysis (generic; caller supplies tools and mapper)
    headline: HeadlineAnalysis (analyze_headline, generate_headline)
    profile: ProfileAnalysis (analyze_profile, optimize_profile_section)
    proposal: ProposalAnalysis (analyze_proposal, generate_proposal)
    viral_post: ViralPostAnalysis (analyze_viral_post, generate_viral_post)
"""

from panelstream.features.analysis import AIAnalysis
from panelstream.features.headline import HeadlineAnalysis
from panelstream.features.profile import ProfileAnalysis
from panelstream.features.proposal import ProposalAnalysis
from panelstream.features.viral_post import ViralPostAnalysis

__all__ = [
    "AIAnalysis",
    "HeadlineAnalysis",
    "ProfileAnalysis",
    "ProposalAnalysis",
    "ViralPostAnalysis",
]
