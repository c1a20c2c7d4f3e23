"""
Company Profiler -- structured company profile from enrichment data.

One generative call turns firmographic enrichment and the existing-content
summary into a ``CompanyProfile``.  The raw response is never trusted:
:func:`sanitize_profile` fills every field with a named default, so the
downstream stages can rely on a fully-populated shape.

Error philosophy: an empty or non-JSON response raises
``CompanyProfileError``; a JSON object with missing fields is sanitized.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from src.config import FusionThresholds
from src.exceptions import CompanyProfileError, GenerationError
from src.models import (
    CompanyProfile,
    ContentStyle,
    CostInfo,
    Differentiator,
    IdeaRequest,
    TargetAudience,
)
from src.tools.claude_client import ClaudeClient
from src.utils import coerce_number

logger = logging.getLogger("CompanyProfiler")

PROFILE_SYSTEM_PROMPT = (
    "You are a strict B2B company analyst focused on specific differentiators "
    "and audience fit."
)

DEFAULT_DIFFERENTIATOR_CLAIM = "Company-specific capability"
DEFAULT_DIFFERENTIATOR_EVIDENCE = "Derived from available company context"
DEFAULT_DIFFERENTIATOR_CATEGORY = "product_feature"
DEFAULT_UNIQUENESS = 65.0


# =============================================================================
# PROMPT
# =============================================================================


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def build_profile_prompt(request: IdeaRequest) -> str:
    """Render the profile prompt; every missing enrichment field reads ``Unknown``."""
    enrichment = request.enrichment
    content = request.content_summary

    industry = "Unknown"
    tech_stack = keywords = "Unknown"
    description = "No enriched description"
    funding = funding_stage = team_size = "Unknown"
    if enrichment is not None:
        industry = enrichment.industry or ", ".join(enrichment.industries) or "Unknown"
        tech_stack = ", ".join(enrichment.technologies) or "Unknown"
        keywords = ", ".join(enrichment.keywords) or "Unknown"
        description = enrichment.description or description
        funding = enrichment.total_funding_formatted or "Unknown"
        funding_stage = enrichment.latest_funding_stage or "Unknown"
        team_size = str(enrichment.employee_count or enrichment.employee_range or "Unknown")

    technical = code = diagrams = developer = False
    frequency: Any = "unknown"
    summary = "none"
    rating = "unknown"
    if content is not None:
        technical = content.is_technical
        code = content.has_code_examples
        diagrams = content.has_diagrams
        developer = content.is_developer_focused
        if content.monthly_frequency is not None:
            frequency = content.monthly_frequency
        summary = content.content_summary or "none"
        rating = content.rating or "unknown"

    return f"""You are building a precise company profile for high-quality B2B content strategy.

COMPANY
- Name: {request.company_name}
- Website: {request.website}
- Type hint: {request.company_type or "Unknown"}
- Industry: {industry}
- Description: {description}
- Funding: {funding}
- Funding Stage: {funding_stage}
- Team Size: {team_size}
- Tech Stack: {tech_stack}
- Keywords: {keywords}

BLOG SIGNALS
- Technical content: {_yes_no(technical)}
- Code examples: {_yes_no(code)}
- Diagrams: {_yes_no(diagrams)}
- Developer-focused: {_yes_no(developer)}
- Monthly frequency: {frequency}
- Content summary: {summary}
- Blog rating: {rating}

Rules:
1) Return 3-5 differentiators with evidence, uniquenessScore >= 60.
2) Avoid generic claims.
3) Keep audience and content style grounded in provided data.

Return JSON:
{{
  "companyName": "{request.company_name}",
  "oneLinerDescription": "max 15 words",
  "companyType": "string",
  "techStack": ["..."],
  "uniqueDifferentiators": [
    {{
      "claim": "string",
      "evidence": "string",
      "category": "market_niche | technical_approach | business_model | customer_segment | product_feature",
      "uniquenessScore": 75
    }}
  ],
  "targetAudience": {{
    "primary": "string",
    "secondary": "string",
    "sophisticationLevel": "beginner | intermediate | advanced",
    "jobTitles": ["..."],
    "industries": ["..."]
  }},
  "contentStyle": {{
    "tone": "string",
    "technicalDepth": "low | medium | high",
    "formatPreferences": ["..."],
    "topicsTheyLike": ["..."],
    "topicsToAvoid": ["..."]
  }}
}}"""


# =============================================================================
# SANITIZATION
# =============================================================================


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _list(value: Any, default: Optional[List[str]] = None) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return list(default or [])


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def sanitize_differentiators(
    raw: Any,
    thresholds: Optional[FusionThresholds] = None,
) -> List[Differentiator]:
    """First N differentiators with defaults, keeping only unique-enough ones."""
    thresholds = thresholds or FusionThresholds()
    if not isinstance(raw, list):
        return []
    result: List[Differentiator] = []
    for item in raw[: thresholds.max_differentiators]:
        item = _mapping(item)
        differentiator = Differentiator(
            claim=_text(item.get("claim"), DEFAULT_DIFFERENTIATOR_CLAIM),
            evidence=_text(item.get("evidence"), DEFAULT_DIFFERENTIATOR_EVIDENCE),
            category=_text(item.get("category"), DEFAULT_DIFFERENTIATOR_CATEGORY),
            uniqueness_score=coerce_number(item.get("uniquenessScore"), DEFAULT_UNIQUENESS),
        )
        if differentiator.uniqueness_score >= thresholds.min_uniqueness:
            result.append(differentiator)
    return result


def sanitize_profile(
    raw: Any,
    request: IdeaRequest,
    thresholds: Optional[FusionThresholds] = None,
) -> CompanyProfile:
    """
    Build a fully-populated profile from an untrusted model response.

    Args:
        raw: Parsed model output (any shape).
        request: The run's request, used for name/type/tech-stack fallbacks.
        thresholds: Differentiator cap and uniqueness floor.

    Returns:
        A ``CompanyProfile`` where every field has a value.
    """
    raw = _mapping(raw)
    audience = _mapping(raw.get("targetAudience"))
    style = _mapping(raw.get("contentStyle"))
    defaults_audience = TargetAudience()
    defaults_style = ContentStyle()

    company_name = _text(raw.get("companyName"), request.company_name)

    tech_stack = _list(raw.get("techStack"))
    if not tech_stack and request.enrichment is not None:
        tech_stack = list(request.enrichment.technologies)

    return CompanyProfile(
        company_name=company_name,
        one_liner=_text(
            raw.get("oneLinerDescription"),
            f"{request.company_name} provides B2B solutions.",
        ),
        company_type=_text(raw.get("companyType"), request.company_type or "Unknown"),
        tech_stack=tech_stack,
        differentiators=sanitize_differentiators(raw.get("uniqueDifferentiators"), thresholds),
        target_audience=TargetAudience(
            primary=_text(audience.get("primary"), defaults_audience.primary),
            secondary=_text(audience.get("secondary"), defaults_audience.secondary),
            sophistication_level=_text(
                audience.get("sophisticationLevel"), defaults_audience.sophistication_level
            ),
            job_titles=_list(audience.get("jobTitles")),
            industries=_list(audience.get("industries")),
        ),
        content_style=ContentStyle(
            tone=_text(style.get("tone"), defaults_style.tone),
            technical_depth=_text(style.get("technicalDepth"), defaults_style.technical_depth),
            format_preferences=_list(
                style.get("formatPreferences"), defaults_style.format_preferences
            ),
            topics_they_like=_list(style.get("topicsTheyLike")),
            topics_to_avoid=_list(style.get("topicsToAvoid")),
        ),
    )


# =============================================================================
# PROFILER
# =============================================================================


class CompanyProfiler:
    """
    Stage 1: build the company profile with one generative call.

    Args:
        claude: Generative client.
        thresholds: Differentiator limits.
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
        self.logger = logging.getLogger("CompanyProfiler")

    async def profile(self, request: IdeaRequest) -> Tuple[CompanyProfile, CostInfo]:
        """Analyze the company.

        Returns:
            Tuple of (sanitized profile, call cost).

        Raises:
            CompanyProfileError: If the call fails or returns empty/non-JSON output.
        """
        self.logger.info("[PROFILE] Profiling %s (%s)", request.company_name, request.website)
        try:
            raw, cost = await self.claude.invoke_json(
                system=PROFILE_SYSTEM_PROMPT,
                prompt=build_profile_prompt(request),
                temperature=0.3,
                max_tokens=2500,
                model=self.model,
            )
        except GenerationError as exc:
            raise CompanyProfileError(f"Company profiling failed: {exc}") from exc

        profile = sanitize_profile(raw, request, self.thresholds)
        self.logger.info(
            "[PROFILE] %d differentiators, %d tech stack items",
            len(profile.differentiators),
            len(profile.tech_stack),
        )
        return profile, cost


__all__ = [
    "CompanyProfiler",
    "PROFILE_SYSTEM_PROMPT",
    "build_profile_prompt",
    "sanitize_differentiators",
    "sanitize_profile",
]
