"""
Gap Analyzer -- content gaps the company should cover.

Stage 2 of the pipeline.  Uses the profile, the matched trend concepts
and the summary of existing content to propose 5-8 gaps, keeping only
those with enough priority.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from src.config import FusionThresholds
from src.exceptions import GapAnalysisError, GenerationError
from src.models import CompanyProfile, ContentGap, CostInfo, MatchedConcept
from src.tools.claude_client import ClaudeClient
from src.utils import coerce_number

logger = logging.getLogger("GapAnalyzer")

GAP_SYSTEM_PROMPT = (
    "You are a B2B content strategist that finds specific content gaps with "
    "business impact."
)

DEFAULT_GAP_TOPIC = "Product-integrated AI tutorial topic"
DEFAULT_GAP_TYPE = "differentiation"
DEFAULT_WHY_IT_MATTERS = "This topic aligns with audience needs and market trends."
DEFAULT_SUGGESTED_ANGLE = "Practical implementation using the company product."
DEFAULT_PRIORITY = 65.0


def build_gap_prompt(
    profile: CompanyProfile,
    matched: List[MatchedConcept],
    content_summary: Optional[str] = None,
) -> str:
    differentiators = "\n".join(
        f"{i}. {d.claim} (evidence: {d.evidence})"
        for i, d in enumerate(profile.differentiators, start=1)
    )
    concept_names = ", ".join(m.concept.name for m in matched)

    return f"""Identify high-value blog content gaps for {profile.company_name}.

COMPANY
- What they do: {profile.one_liner}
- Type: {profile.company_type}
- Audience: {profile.target_audience.primary}
- Tech stack: {", ".join(profile.tech_stack) or "Unknown"}
- Style depth: {profile.content_style.technical_depth}

DIFFERENTIATORS
{differentiators or "- none provided"}

MATCHED TREND CONCEPTS
{concept_names or "none"}

CURRENT BLOG THEMES
{content_summary or "No blog content summary provided"}

Return JSON:
{{
  "gaps": [
    {{
      "topic": "string",
      "gapType": "tech_stack | audience | differentiation | funnel | trending",
      "whyItMatters": "string",
      "suggestedAngle": "string",
      "priorityScore": 0-100
    }}
  ]
}}

Rules:
1) Return 5-8 gaps.
2) Include at least 2 gaps that naturally combine company product + matched trends.
3) Keep topics specific and developer-actionable."""


def sanitize_gap(raw: Any) -> ContentGap:
    raw = raw if isinstance(raw, dict) else {}
    return ContentGap(
        topic=str(raw.get("topic") or DEFAULT_GAP_TOPIC),
        gap_type=str(raw.get("gapType") or DEFAULT_GAP_TYPE),
        why_it_matters=str(raw.get("whyItMatters") or DEFAULT_WHY_IT_MATTERS),
        suggested_angle=str(raw.get("suggestedAngle") or DEFAULT_SUGGESTED_ANGLE),
        priority_score=coerce_number(raw.get("priorityScore"), DEFAULT_PRIORITY),
    )


def filter_gaps(gaps: List[ContentGap], thresholds: Optional[FusionThresholds] = None) -> List[ContentGap]:
    """Drop low-priority gaps and cap the list (model order is kept)."""
    thresholds = thresholds or FusionThresholds()
    kept = [g for g in gaps if g.priority_score >= thresholds.gap_priority_floor]
    return kept[: thresholds.max_gaps]


class GapAnalyzer:
    """Stage 2: identify content gaps with one generative call."""

    def __init__(
        self,
        claude: ClaudeClient,
        thresholds: Optional[FusionThresholds] = None,
        model: Optional[str] = None,
    ) -> None:
        self.claude = claude
        self.thresholds = thresholds or FusionThresholds()
        self.model = model
        self.logger = logging.getLogger("GapAnalyzer")

    async def analyze(
        self,
        profile: CompanyProfile,
        matched: List[MatchedConcept],
        content_summary: Optional[str] = None,
    ) -> Tuple[List[ContentGap], CostInfo]:
        """
        Propose content gaps.

        Raises:
            GapAnalysisError: If the call fails or returns empty/non-JSON output.
        """
        try:
            raw, cost = await self.claude.invoke_json(
                system=GAP_SYSTEM_PROMPT,
                prompt=build_gap_prompt(profile, matched, content_summary),
                temperature=0.45,
                max_tokens=2200,
                model=self.model,
            )
        except GenerationError as exc:
            raise GapAnalysisError(f"Content gap analysis failed: {exc}") from exc

        raw_gaps = raw.get("gaps")
        if not isinstance(raw_gaps, list):
            raw_gaps = []

        gaps = filter_gaps([sanitize_gap(g) for g in raw_gaps], self.thresholds)
        self.logger.info(
            "[GAPS] %d of %d proposed gaps kept", len(gaps), len(raw_gaps)
        )
        return gaps, cost


__all__ = ["GapAnalyzer", "build_gap_prompt", "filter_gaps", "sanitize_gap"]
