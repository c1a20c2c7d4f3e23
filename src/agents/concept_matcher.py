"""
Concept Matcher -- scores trend concepts against the company profile.

One generative call rates every pooled concept for fit.  Only strict
matches (``fit_score >= 70``) are trusted.  When too few concepts pass,
the keyword-overlap fallback injects the best remaining concepts with a
capped synthetic fit score, so idea generation always has trend material.

The fallback heuristic is pure (:func:`profile_terms`,
:func:`keyword_overlap`, :func:`blended_fallback_score`,
:func:`select_fallback_concepts`) and testable without any service.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from src.config import FusionThresholds
from src.exceptions import ConceptMatchError, GenerationError
from src.models import CompanyProfile, MatchedConcept, MatchOutcome, TrendConcept
from src.tools.claude_client import ClaudeClient
from src.utils import coerce_number, normalize_concept_name

logger = logging.getLogger("ConceptMatcher")

MATCH_SYSTEM_PROMPT = (
    "You are a strict trend-company matcher. Prioritize practical, "
    "product-integrated relevance."
)

FALLBACK_FIT_REASON = (
    "Fallback concept injected to preserve trend coverage when strict matching is sparse."
)
DEFAULT_FIT_REASON = "Matched by trend-company relevance analysis"


# =============================================================================
# PROMPT
# =============================================================================


def build_match_prompt(profile: CompanyProfile, concepts: List[TrendConcept]) -> str:
    concepts_text = "\n\n".join(
        f"{i}. {c.name} [{c.source_type}, freshness={c.freshness_score}]\n"
        f"Description: {c.description}\n"
        f"Why hot: {c.why_hot}\n"
        f"Keywords: {', '.join(c.keywords)}"
        for i, c in enumerate(concepts, start=1)
    )
    differentiators = "\n".join(
        f"- {d.claim} (evidence: {d.evidence})" for d in profile.differentiators
    )

    return f"""You are matching current AI trend concepts to a specific company.

COMPANY
- Name: {profile.company_name}
- What they do: {profile.one_liner}
- Company type: {profile.company_type}
- Tech stack: {", ".join(profile.tech_stack) or "Unknown"}
- Audience: {profile.target_audience.primary}
- Technical depth: {profile.content_style.technical_depth}

DIFFERENTIATORS
{differentiators or "- none provided"}

CONCEPTS
{concepts_text}

Output JSON:
{{
  "matches": [
    {{
      "conceptName": "string",
      "fitScore": 0-100,
      "fitReason": "1-2 sentences",
      "productIntegration": "How their product integrates",
      "tutorialAngle": "How to ... with [company] using [concept]",
      "include": true | false,
      "rejectionReason": "string or null"
    }}
  ]
}}

Rules:
1) Keep strict scoring.
2) Usually include 2-5 concepts.
3) Only include if the concept can produce practical dev-focused tutorials."""


# =============================================================================
# FALLBACK HEURISTIC (pure)
# =============================================================================


def profile_terms(profile: CompanyProfile) -> Set[str]:
    """
    Lowercased terms describing the company.

    Company type, the one-liner and each tech stack item are whole terms;
    differentiator claims contribute one term per word.  Blank terms are
    dropped, since an empty string is contained in every keyword.
    """
    terms = [profile.company_type, profile.one_liner, *profile.tech_stack]
    for differentiator in profile.differentiators:
        terms.extend(differentiator.claim.split())
    return {t.strip().lower() for t in terms if t and t.strip()}


def keyword_overlap(concept: TrendConcept, terms: Set[str]) -> int:
    """Number of concept keywords contained in, or containing, any profile term."""
    overlap = 0
    for keyword in concept.keywords:
        normalized = keyword.strip().lower()
        if not normalized:
            continue
        if any(normalized in term or term in normalized for term in terms):
            overlap += 1
    return overlap


def blended_fallback_score(
    concept: TrendConcept,
    overlap: int,
    thresholds: Optional[FusionThresholds] = None,
) -> float:
    """``overlap*12 + freshness*0.5 + confidence*0.2``."""
    thresholds = thresholds or FusionThresholds()
    return (
        overlap * thresholds.overlap_weight
        + concept.freshness_score * thresholds.fallback_freshness_weight
        + concept.confidence_score * thresholds.fallback_confidence_weight
    )


def fallback_fit_score(overlap: int, thresholds: Optional[FusionThresholds] = None) -> float:
    """Synthetic fit score, capped below strict-match territory."""
    thresholds = thresholds or FusionThresholds()
    return float(min(
        thresholds.fallback_fit_cap,
        thresholds.fallback_fit_base + overlap * thresholds.fallback_fit_per_overlap,
    ))


def select_fallback_concepts(
    pool: List[TrendConcept],
    profile: CompanyProfile,
    already_matched: List[MatchedConcept],
    needed: int,
    thresholds: Optional[FusionThresholds] = None,
) -> List[MatchedConcept]:
    """
    Pick up to ``needed`` unmatched pool concepts by blended score.

    Args:
        pool: Concepts offered to the matcher.
        profile: Company profile the overlap is measured against.
        already_matched: Strict matches; their concepts are excluded.
        needed: Number of concepts to inject.
        thresholds: Weights and fit-score shape.

    Returns:
        ``MatchedConcept`` entries flagged ``from_fallback=True``.
    """
    thresholds = thresholds or FusionThresholds()
    if needed <= 0:
        return []

    terms = profile_terms(profile)
    taken = {normalize_concept_name(m.concept.name) for m in already_matched}
    scored = []
    for concept in pool:
        if normalize_concept_name(concept.name) in taken:
            continue
        overlap = keyword_overlap(concept, terms)
        scored.append((blended_fallback_score(concept, overlap, thresholds), overlap, concept))
    scored.sort(key=lambda entry: entry[0], reverse=True)

    return [
        MatchedConcept(
            concept=concept,
            fit_score=fallback_fit_score(overlap, thresholds),
            fit_reason=FALLBACK_FIT_REASON,
            product_integration=(
                f"Show a practical {concept.name} implementation using "
                f"{profile.company_name} capabilities"
            ),
            tutorial_angle=f"How to implement {concept.name} with {profile.company_name}",
            from_fallback=True,
        )
        for _, overlap, concept in scored[:needed]
    ]


# =============================================================================
# RESPONSE PARSING
# =============================================================================


def parse_match_candidates(
    raw_matches: List[Any],
    pool: List[TrendConcept],
    profile: CompanyProfile,
) -> List[MatchedConcept]:
    """Map model matches onto pool concepts, sorted by fit score (stable).

    Unknown concept names are dropped; a concept named twice keeps its
    first entry.
    """
    by_name: Dict[str, TrendConcept] = {}
    for concept in pool:
        by_name.setdefault(normalize_concept_name(concept.name), concept)

    seen: Set[str] = set()
    candidates: List[MatchedConcept] = []
    for item in raw_matches:
        if not isinstance(item, dict):
            continue
        key = normalize_concept_name(str(item.get("conceptName") or ""))
        concept = by_name.get(key)
        if concept is None or key in seen:
            continue
        seen.add(key)
        candidates.append(
            MatchedConcept(
                concept=concept,
                fit_score=coerce_number(item.get("fitScore"), 0.0),
                fit_reason=str(item.get("fitReason") or DEFAULT_FIT_REASON),
                product_integration=str(
                    item.get("productIntegration")
                    or f"Integrate {concept.name} with {profile.company_name} workflows"
                ),
                tutorial_angle=str(
                    item.get("tutorialAngle")
                    or f"How to use {profile.company_name} with {concept.name}"
                ),
            )
        )
    candidates.sort(key=lambda m: m.fit_score, reverse=True)
    return candidates


def rejected_sample(raw_matches: List[Any], limit: int = 4) -> List[str]:
    """Up to ``limit`` ``"name: reason"`` strings for matches with a rejection reason."""
    sample: List[str] = []
    for item in raw_matches:
        if not isinstance(item, dict):
            continue
        reason = item.get("rejectionReason")
        if isinstance(reason, str) and reason:
            sample.append(f"{item.get('conceptName')}: {reason}")
        if len(sample) >= limit:
            break
    return sample


def select_matches(
    candidates: List[MatchedConcept],
    pool: List[TrendConcept],
    profile: CompanyProfile,
    thresholds: Optional[FusionThresholds] = None,
) -> MatchOutcome:
    """Apply the strict threshold, then the fallback, then cap the result.

    The returned outcome carries no cost and an empty rejected sample; the
    caller fills those in.
    """
    thresholds = thresholds or FusionThresholds()
    selected = [
        c for c in candidates if c.fit_score >= thresholds.strict_fit_threshold
    ][: thresholds.max_strict_matches]

    fallback_used = False
    injected: List[MatchedConcept] = []
    if len(selected) < thresholds.concept_match_min:
        fallback_used = True
        injected = select_fallback_concepts(
            pool,
            profile,
            selected,
            thresholds.concept_match_min - len(selected),
            thresholds,
        )

    # sorted() is stable, so strict matches stay ahead of fallbacks on ties
    combined = sorted([*selected, *injected], key=lambda m: m.fit_score, reverse=True)
    return MatchOutcome(
        matched=combined[: thresholds.max_matched_concepts],
        ranked_candidates=candidates[:10],
        fallback_used=fallback_used,
        fallback_injected_count=len(injected),
        rejected_sample=[],
    )


# =============================================================================
# MATCHER
# =============================================================================


class ConceptMatcher:
    """
    Stage 1.5: match pooled trend concepts to the company.

    Args:
        claude: Generative client.
        thresholds: Strict threshold, minimum, caps and fallback weights.
        model: Optional model override.

    Usage::

        matcher = ConceptMatcher(claude)
        outcome = await matcher.match(profile, pool.selected_for_matching)
        for m in outcome.matched:
            print(m.concept.name, m.fit_score, m.from_fallback)
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
        self.logger = logging.getLogger("ConceptMatcher")

    async def match(self, profile: CompanyProfile, pool: List[TrendConcept]) -> MatchOutcome:
        """Score ``pool`` against ``profile``.

        Raises:
            ConceptMatchError: If the call fails or returns empty/non-JSON output.
        """
        self.logger.info("[MATCH] Matching %d concepts to %s", len(pool), profile.company_name)
        try:
            raw, cost = await self.claude.invoke_json(
                system=MATCH_SYSTEM_PROMPT,
                prompt=build_match_prompt(profile, pool),
                temperature=0.3,
                max_tokens=2000,
                model=self.model,
            )
        except GenerationError as exc:
            raise ConceptMatchError(f"Concept matching failed: {exc}") from exc

        raw_matches = raw.get("matches")
        if not isinstance(raw_matches, list):
            raw_matches = []

        candidates = parse_match_candidates(raw_matches, pool, profile)
        outcome = select_matches(candidates, pool, profile, self.thresholds)
        outcome.rejected_sample = rejected_sample(raw_matches)
        outcome.cost = cost

        if outcome.fallback_used:
            self.logger.warning(
                "[MATCH] Only %d strict matches, injected %d fallback concepts",
                len(outcome.matched) - outcome.fallback_injected_count,
                outcome.fallback_injected_count,
            )
        self.logger.info(
            "[MATCH] Selected %d concepts: %s",
            len(outcome.matched),
            ", ".join(f"{m.concept.name} ({m.fit_score:.0f})" for m in outcome.matched),
        )
        return outcome


__all__ = [
    "ConceptMatcher",
    "MATCH_SYSTEM_PROMPT",
    "blended_fallback_score",
    "build_match_prompt",
    "fallback_fit_score",
    "keyword_overlap",
    "parse_match_candidates",
    "profile_terms",
    "rejected_sample",
    "select_fallback_concepts",
    "select_matches",
]
