"""
Idea Generator -- one batch of blog ideas per attempt.

Stage 3 of the pipeline.  Each attempt asks for exactly five ideas that tie
a differentiator or content gap to the company, with at least three concept
tutorials built on the matched trend concepts.  On a regeneration attempt
the previous attempt's rejection reasons are fed back into the prompt.

Every idea passes through :func:`sanitize_idea`, which supplies a named
default for every field the model left out.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from src.agents.attempt_loop import count_concept_tutorials
from src.config import FusionThresholds
from src.exceptions import GenerationError, IdeaGenerationError
from src.models import (
    CompanyProfile,
    ContentGap,
    CostInfo,
    GeneratedIdea,
    MatchedConcept,
)
from src.tools.claude_client import ClaudeClient
from src.utils import coerce_number

logger = logging.getLogger("IdeaGenerator")

GENERATION_SYSTEM_PROMPT = (
    "You are an expert technical content strategist. Produce specific, "
    "current, implementation-focused ideas."
)

# Marketing phrases that generated ideas must not use
BUZZWORD_BLACKLIST: List[str] = [
    "cutting-edge",
    "revolutionary",
    "game-changing",
    "leverage",
    "synergy",
    "paradigm shift",
    "unlock potential",
    "unlock the power",
    "seamless",
    "robust",
    "world-class",
    "best-in-class",
    "take it to the next level",
    "disruptive",
    "next-generation",
    "state-of-the-art",
    "industry-leading",
    "groundbreaking",
    "innovative solution",
    "transformative",
    "empower",
    "supercharge",
    "turbocharge",
    "streamline",
    "optimize your workflow",
    "holistic approach",
]

DEFAULT_LEARNINGS = [
    "Implementation steps",
    "Architecture decisions",
    "Operational guardrails",
    "Measurable outcomes",
]
DEFAULT_STACK_TOOLS = ["Company product", "LLMs"]


# =============================================================================
# PROMPT
# =============================================================================


def build_generation_prompt(
    profile: CompanyProfile,
    gaps: List[ContentGap],
    matched: List[MatchedConcept],
    specific_requirements: Optional[str] = None,
    attempt: int = 1,
    rejection_summary: Optional[str] = None,
    thresholds: Optional[FusionThresholds] = None,
) -> str:
    """Render the generation prompt for one attempt."""
    thresholds = thresholds or FusionThresholds()

    differentiators = "\n".join(
        f"{i}. {d.claim} (evidence: {d.evidence})"
        for i, d in enumerate(profile.differentiators, start=1)
    )
    gap_text = "\n".join(
        f"{i}. {g.topic} [{g.gap_type}] - {g.suggested_angle}"
        for i, g in enumerate(gaps[: thresholds.gaps_in_prompt], start=1)
    )
    concept_text = "\n\n".join(
        f"{i}. {m.concept.name} [{m.concept.source_type}] "
        f"(fit: {m.fit_score:g}, freshness: {m.concept.freshness_score})\n"
        f"Why hot: {m.concept.why_hot}\n"
        f"Product integration: {m.product_integration}\n"
        f"Tutorial angle: {m.tutorial_angle}"
        for i, m in enumerate(matched, start=1)
    )

    extra: List[str] = []
    if specific_requirements:
        extra.append(f"- Specific requirements from user: {specific_requirements}")
    if rejection_summary:
        extra.append(f"- Fix these issues from previous attempt: {rejection_summary}")
    if attempt > 1:
        extra.append("- This is a regeneration attempt. Increase specificity and practical depth.")
    extra_text = "\n".join(extra)

    return f"""Generate {thresholds.ideas_per_attempt} HIGH-QUALITY blog ideas for {profile.company_name}.

COMPANY CONTEXT
- What they do: {profile.one_liner}
- Audience: {profile.target_audience.primary}
- Technical depth: {profile.content_style.technical_depth}
- Tech stack: {", ".join(profile.tech_stack) or "Unknown"}

DIFFERENTIATORS
{differentiators or "- none provided"}

CONTENT GAPS
{gap_text or "- none provided"}

MATCHED TREND CONCEPTS (use these)
{concept_text or "- none provided"}

REQUIREMENTS
- EXACTLY {thresholds.ideas_per_attempt} ideas.
- Every idea must be tied to one differentiator or one content gap.
- At least {thresholds.trend_idea_min} ideas MUST be concept tutorials combining company product + one matched trend concept.
- Every idea must be practical for developers and executable by a single writer.
- Avoid generic marketing fluff and vague "AI is changing everything" style titles.
- Never use these words or phrases: {", ".join(BUZZWORD_BLACKLIST)}.
- Use specific product workflows and implementation outcomes.
{extra_text}

OUTPUT JSON:
{{
  "ideas": [
    {{
      "title": "string",
      "whyOnlyTheyCanWriteThis": "string",
      "specificEvidence": "string",
      "targetGap": "string",
      "audienceFit": "string",
      "whatReaderLearns": ["string", "string", "string", "string"],
      "keyStackTools": ["string", "string"],
      "angleToAvoidDuplication": "string",
      "differentiatorUsed": "string",
      "contentGapFilled": "string",
      "probability": 0.0-1.0,
      "aiConcept": "string",
      "isConceptTutorial": true | false,
      "conceptFitScore": 0-100,
      "trendEvidence": "why this trend is current now",
      "productTrendIntegration": "specific implementation linkage",
      "trendFreshnessScore": 0-100,
      "sourceConceptType": "curated | dynamic"
    }}
  ]
}}"""


# =============================================================================
# SANITIZATION
# =============================================================================


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _text_list(value: Any, limit: int) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None][:limit]


def sanitize_idea(raw: Any) -> GeneratedIdea:
    """Build an immutable idea from one model item, defaulting every field."""
    raw = raw if isinstance(raw, dict) else {}
    learnings = _text_list(raw.get("whatReaderLearns"), 4)
    tools = _text_list(raw.get("keyStackTools"), 6)
    fit = raw.get("conceptFitScore")

    return GeneratedIdea(
        title=str(raw.get("title") or "Practical company-specific AI implementation guide"),
        why_only_they_can_write_this=str(
            raw.get("whyOnlyTheyCanWriteThis") or "This idea uses unique company capabilities."
        ),
        specific_evidence=str(
            raw.get("specificEvidence")
            or "Derived from company differentiators and audience profile."
        ),
        target_gap=str(raw.get("targetGap") or "differentiator showcase"),
        audience_fit=str(raw.get("audienceFit") or "Matches technical audience needs."),
        what_reader_learns=learnings or list(DEFAULT_LEARNINGS),
        key_stack_tools=tools or list(DEFAULT_STACK_TOOLS),
        angle_to_avoid_duplication=str(
            raw.get("angleToAvoidDuplication")
            or "Focus on concrete implementation details and measurable outcomes."
        ),
        probability=coerce_number(raw.get("probability"), 0.7),
        is_concept_tutorial=bool(raw.get("isConceptTutorial")),
        trend_evidence=str(
            raw.get("trendEvidence")
            or "Current production adoption and tooling ecosystem momentum."
        ),
        product_trend_integration=str(
            raw.get("productTrendIntegration")
            or "Use company product directly in trend implementation."
        ),
        trend_freshness_score=coerce_number(raw.get("trendFreshnessScore"), 70.0),
        source_concept_type="dynamic" if raw.get("sourceConceptType") == "dynamic" else "curated",
        differentiator_used=_optional_text(raw.get("differentiatorUsed")),
        content_gap_filled=_optional_text(raw.get("contentGapFilled")),
        ai_concept=_optional_text(raw.get("aiConcept")),
        concept_fit_score=(
            None if isinstance(fit, bool) or not isinstance(fit, (int, float)) else float(fit)
        ),
    )


def find_buzzwords(idea: GeneratedIdea) -> List[str]:
    """Blacklisted phrases present in the idea's reader-facing text."""
    text = " ".join(
        [
            idea.title,
            idea.why_only_they_can_write_this,
            idea.audience_fit,
            idea.angle_to_avoid_duplication,
            *idea.what_reader_learns,
        ]
    ).lower()
    return [phrase for phrase in BUZZWORD_BLACKLIST if phrase in text]


# =============================================================================
# GENERATOR
# =============================================================================


class IdeaGenerator:
    """
    Stage 3: generate one batch of ideas.

    Args:
        claude: Generative client.
        thresholds: Batch size, probability floor and tutorial minimum.
        model: Optional model override.
    """

    def __init__(
        self,
        claude: ClaudeClient,
        thresholds: Optional[FusionThresholds] = None,
        model: Optional[str] = None,
    ) -> None:
        self.claude = claude
        self.thresholds = thresholds or FusionThresholds()
        self.model = model
        self.logger = logging.getLogger("IdeaGenerator")

    async def generate(
        self,
        profile: CompanyProfile,
        gaps: List[ContentGap],
        matched: List[MatchedConcept],
        specific_requirements: Optional[str] = None,
        attempt: int = 1,
        rejection_summary: Optional[str] = None,
    ) -> Tuple[List[GeneratedIdea], CostInfo]:
        """Generate ideas for one attempt.

        Returns:
            Tuple of (at most ``ideas_per_attempt`` sanitized ideas, call cost).

        Raises:
            IdeaGenerationError: If the call fails or returns empty/non-JSON output.
        """
        prompt = build_generation_prompt(
            profile,
            gaps,
            matched,
            specific_requirements=specific_requirements,
            attempt=attempt,
            rejection_summary=rejection_summary,
            thresholds=self.thresholds,
        )
        self.logger.info(
            "[GENERATE] Attempt %d for %s%s",
            attempt,
            profile.company_name,
            " (with rejection feedback)" if rejection_summary else "",
        )

        try:
            raw, cost = await self.claude.invoke_json(
                system=GENERATION_SYSTEM_PROMPT,
                prompt=prompt,
                temperature=0.65,
                max_tokens=3200,
                model=self.model,
            )
        except GenerationError as exc:
            raise IdeaGenerationError(f"Idea generation failed: {exc}") from exc

        raw_ideas = raw.get("ideas")
        if not isinstance(raw_ideas, list):
            raw_ideas = []

        ideas = [
            idea
            for idea in (sanitize_idea(item) for item in raw_ideas)
            if idea.probability >= self.thresholds.idea_probability_floor
        ][: self.thresholds.ideas_per_attempt]

        self.logger.info(
            "[GENERATE] Attempt %d: %d ideas (%d concept tutorials)",
            attempt,
            len(ideas),
            count_concept_tutorials(ideas),
        )
        return ideas, cost


__all__ = [
    "BUZZWORD_BLACKLIST",
    "IdeaGenerator",
    "build_generation_prompt",
    "find_buzzwords",
    "sanitize_idea",
]
