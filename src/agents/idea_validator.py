"""
Idea Validator -- multi-objective quality gate for generated ideas.

Stage 4 of the pipeline.  The whole batch is scored in ONE generative call
on five independent dimensions.  The composite is a fixed weighted sum, and
an idea is valid only when the model's verdict is ACCEPT and the composite
and every individual floor pass together.

Partial responses are tolerated: an idea the model did not evaluate gets
conservative default scores (and therefore fails) instead of failing the
whole batch.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from src.config import FusionThresholds
from src.exceptions import GenerationError, IdeaValidationError
from src.models import (
    CompanyProfile,
    CostInfo,
    GeneratedIdea,
    ValidationOutcome,
    ValidationResult,
    ValidationScores,
)
from src.tools.claude_client import ClaudeClient
from src.utils import coerce_number

logger = logging.getLogger("IdeaValidator")

VALIDATION_SYSTEM_PROMPT = (
    "You are a strict evaluator for technical B2B content quality and trend "
    "relevance. Return JSON only."
)

DEFAULT_REJECTION_REASON = "Does not meet quality thresholds"
DEFAULT_IMPROVEMENT = "Increase trend specificity and product integration detail"


# =============================================================================
# SCORING CRITERIA
#
# ``response_key`` is the field name in the model's evaluation object,
# ``default`` the score used when the model omits it, and ``floor`` the
# FusionThresholds attribute holding the per-dimension minimum (``None``
# means the dimension only contributes to the composite).
# =============================================================================

VALIDATION_CRITERIA: Dict[str, Dict[str, Any]] = {
    "company_relevance": {
        "weight": 0.30,
        "response_key": "companyRelevance",
        "default": 45.0,
        "floor": "company_relevance_floor",
        "prompt_hint": "specific to this company, not generic.",
    },
    "trend_freshness": {
        "weight": 0.25,
        "response_key": "trendFreshness",
        "default": 45.0,
        "floor": "trend_freshness_floor",
        "prompt_hint": "clearly tied to current AI shifts.",
    },
    "product_trend_integration": {
        "weight": 0.20,
        "response_key": "productTrendIntegration",
        "default": 45.0,
        "floor": "product_integration_floor",
        "prompt_hint": "trend meaningfully uses company product.",
    },
    "audience_relevance": {
        "weight": 0.15,
        "response_key": "audienceRelevance",
        "default": 50.0,
        "floor": None,
        "prompt_hint": "depth and tone fit.",
    },
    "developer_actionability": {
        "weight": 0.10,
        "response_key": "developerActionability",
        "default": 50.0,
        "floor": "developer_actionability_floor",
        "prompt_hint": "implementable steps for technical readers.",
    },
}


# =============================================================================
# PURE SCORING
# =============================================================================


def calculate_overall_score(scores: ValidationScores) -> int:
    """Weighted composite, rounded to an integer."""
    total = sum(
        getattr(scores, name) * criterion["weight"]
        for name, criterion in VALIDATION_CRITERIA.items()
    )
    return int(round(total))


def is_idea_valid(
    scores: ValidationScores,
    verdict: Any,
    thresholds: Optional[FusionThresholds] = None,
) -> bool:
    """ACCEPT verdict AND composite floor AND every per-dimension floor."""
    thresholds = thresholds or FusionThresholds()
    if not isinstance(verdict, str) or verdict.strip().upper() != "ACCEPT":
        return False
    if scores.overall_score < thresholds.overall_floor:
        return False
    for name, criterion in VALIDATION_CRITERIA.items():
        floor_attr = criterion["floor"]
        if floor_attr and getattr(scores, name) < getattr(thresholds, floor_attr):
            return False
    return True


def scores_from_evaluation(evaluation: Dict[str, Any]) -> ValidationScores:
    """Read the five dimension scores, defaulting any that are missing."""
    values = {
        name: coerce_number(evaluation.get(criterion["response_key"]), criterion["default"])
        for name, criterion in VALIDATION_CRITERIA.items()
    }
    scores = ValidationScores(**values)
    scores.overall_score = calculate_overall_score(scores)
    return scores


def find_evaluation(evaluations: List[Any], idea_number: int) -> Dict[str, Any]:
    """First evaluation whose 1-based ``ideaIndex`` equals ``idea_number``, or ``{}``."""
    for evaluation in evaluations:
        if not isinstance(evaluation, dict):
            continue
        if coerce_number(evaluation.get("ideaIndex"), -1) == idea_number:
            return evaluation
    return {}


def build_validation_result(
    idea: GeneratedIdea,
    evaluation: Dict[str, Any],
    thresholds: Optional[FusionThresholds] = None,
) -> ValidationResult:
    scores = scores_from_evaluation(evaluation)
    valid = is_idea_valid(scores, evaluation.get("verdict"), thresholds)
    if valid:
        return ValidationResult(idea=idea, is_valid=True, scores=scores)
    return ValidationResult(
        idea=idea,
        is_valid=False,
        scores=scores,
        rejection_reason=str(evaluation.get("rejectionReason") or DEFAULT_REJECTION_REASON),
        improvement_suggestion=str(evaluation.get("improvementSuggestion") or DEFAULT_IMPROVEMENT),
    )


def summarize_results(results: List[ValidationResult], cost: Optional[CostInfo] = None) -> ValidationOutcome:
    """Sort by composite (highest first) and count valid and rejected ideas."""
    ordered = sorted(results, key=lambda r: r.scores.overall_score, reverse=True)
    rejected = [r for r in ordered if not r.is_valid]
    return ValidationOutcome(
        results=ordered,
        valid_count=len(ordered) - len(rejected),
        rejected_count=len(rejected),
        top_rejection_reasons=[r.rejection_reason or DEFAULT_REJECTION_REASON for r in rejected][:3],
        cost=cost or CostInfo(),
    )


# =============================================================================
# PROMPT
# =============================================================================


def build_validation_prompt(profile: CompanyProfile, ideas: List[GeneratedIdea]) -> str:
    differentiators = "\n".join(f"- {d.claim}" for d in profile.differentiators)
    listing = "\n".join(
        f"""
IDEA {i}
- Title: {idea.title}
- Why unique: {idea.why_only_they_can_write_this}
- Target gap: {idea.target_gap}
- AI concept: {idea.ai_concept or "none"}
- Trend evidence: {idea.trend_evidence}
- Product integration: {idea.product_trend_integration}
- Audience fit: {idea.audience_fit}"""
        for i, idea in enumerate(ideas, start=1)
    )
    guidance = "\n".join(
        f"- {criterion['response_key']}: {criterion['prompt_hint']}"
        for criterion in VALIDATION_CRITERIA.values()
    )

    return f"""Evaluate each idea for both company relevance and trend relevance.

COMPANY
- Name: {profile.company_name}
- What they do: {profile.one_liner}
- Audience: {profile.target_audience.primary}
- Tech depth: {profile.content_style.technical_depth}

DIFFERENTIATORS
{differentiators or "- none provided"}

IDEAS
{listing}

Output JSON:
{{
  "evaluations": [
    {{
      "ideaIndex": 1,
      "companyRelevance": 0-100,
      "trendFreshness": 0-100,
      "productTrendIntegration": 0-100,
      "audienceRelevance": 0-100,
      "developerActionability": 0-100,
      "verdict": "ACCEPT" | "REJECT",
      "rejectionReason": "string or null",
      "improvementSuggestion": "string or null"
    }}
  ]
}}

Scoring guidance:
{guidance}

Be strict and practical."""


# =============================================================================
# VALIDATOR
# =============================================================================


class IdeaValidator:
    """
    Stage 4: score a batch of ideas in one call.

    Args:
        claude: Generative client.
        thresholds: Composite and per-dimension floors.
        model: Model for validation (a cheaper model is used by default
            in the pipeline).

    Usage::

        validator = IdeaValidator(claude, model=settings.validation_model)
        outcome = await validator.validate(profile, ideas)
        print(outcome.valid_count, outcome.top_rejection_reasons)
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
        self.logger = logging.getLogger("IdeaValidator")

    async def validate(self, profile: CompanyProfile, ideas: List[GeneratedIdea]) -> ValidationOutcome:
        """
        Score every idea in ``ideas``.

        An empty batch returns an empty outcome without calling the service.

        Raises:
            IdeaValidationError: If the call fails or returns empty/non-JSON output.
        """
        if not ideas:
            return summarize_results([])

        try:
            raw, cost = await self.claude.invoke_json(
                system=VALIDATION_SYSTEM_PROMPT,
                prompt=build_validation_prompt(profile, ideas),
                temperature=0.2,
                max_tokens=2200,
                model=self.model,
            )
        except GenerationError as exc:
            raise IdeaValidationError(f"Idea validation failed: {exc}") from exc

        evaluations = raw.get("evaluations")
        if not isinstance(evaluations, list):
            evaluations = []

        results: List[ValidationResult] = []
        for number, idea in enumerate(ideas, start=1):
            evaluation = find_evaluation(evaluations, number)
            if not evaluation:
                self.logger.warning(
                    "[VALIDATE] No evaluation for idea %d ('%s'), using defaults",
                    number,
                    idea.title,
                )
            results.append(build_validation_result(idea, evaluation, self.thresholds))

        outcome = summarize_results(results, cost)
        self.logger.info(
            "[VALIDATE] %d valid, %d rejected", outcome.valid_count, outcome.rejected_count
        )
        return outcome


__all__ = [
    "DEFAULT_IMPROVEMENT",
    "DEFAULT_REJECTION_REASON",
    "IdeaValidator",
    "VALIDATION_CRITERIA",
    "build_validation_prompt",
    "build_validation_result",
    "calculate_overall_score",
    "find_evaluation",
    "is_idea_valid",
    "scores_from_evaluation",
    "summarize_results",
]
