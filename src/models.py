"""
Centralized shared data types for the trend-fusion idea pipeline.

This module is the single source of truth for the data models used across
the pipeline.  Every agent reads from and writes to ``PipelineState`` using
the types defined here.

Hierarchy of types
------------------
- **Literals**: ``ConceptCategory``, ``HypeLevel``, ``ConceptSourceType``,
  ``GapType``, ``DifferentiatorCategory``
- **Signals & concepts**: ``RawSignal``, ``TrendConcept``, ``CachedConceptSet``,
  ``CacheRead``, ``ConceptFetchResult``, ``TrendPool``
- **Cost accounting**: ``TokenUsage``, ``CostInfo``, ``StageCosts``
- **Caller input**: ``CompanyEnrichment``, ``ContentSummary``, ``IdeaRequest``
- **Company relevance**: ``Differentiator``, ``TargetAudience``,
  ``ContentStyle``, ``CompanyProfile``, ``ContentGap``, ``MatchedConcept``,
  ``MatchOutcome``
- **Ideas & validation**: ``GeneratedIdea``, ``ValidationScores``,
  ``ValidationResult``, ``ValidationOutcome``
- **Results**: ``PipelineResult``
- **Orchestrator state**: ``PipelineState`` (``TypedDict``)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    TypedDict,
)

from src.utils import parse_timestamp, utc_now


# =============================================================================
# LITERAL TYPES
# =============================================================================

ConceptCategory = Literal["paradigm", "technique", "protocol", "architecture", "tool"]
HypeLevel = Literal["emerging", "peak", "maturing", "declining"]
ConceptSourceType = Literal["curated", "dynamic"]
GapType = Literal["tech_stack", "audience", "differentiation", "funnel", "trending"]
DifferentiatorCategory = Literal[
    "market_niche",
    "technical_approach",
    "business_model",
    "customer_segment",
    "product_feature",
]

CONCEPT_CATEGORIES: List[str] = ["paradigm", "technique", "protocol", "architecture", "tool"]
HYPE_LEVELS: List[str] = ["emerging", "peak", "maturing", "declining"]


# =============================================================================
# SIGNALS
# =============================================================================


@dataclass
class RawSignal:
    """A single news item from one of the signal sources."""

    id: str
    title: str
    summary: str
    url: str
    source: str  # hackernews / arxiv / <rss feed key>
    published_at: datetime
    score: Optional[float] = None

    def __repr__(self) -> str:
        return f"RawSignal(id='{self.id}', source={self.source}, title='{self.title[:40]}')"


# =============================================================================
# TREND CONCEPTS
# =============================================================================


@dataclass
class TrendConcept:
    """
    A named AI concept that is currently relevant.

    Curated concepts are compiled in; dynamic concepts are extracted from
    recent signals.  Identity for deduplication is the normalized name
    (see :func:`src.utils.normalize_concept_name`).
    """

    id: str
    name: str
    description: str
    why_hot: str
    use_cases: List[str]
    keywords: List[str]
    category: str
    hype_level: str
    source_type: str = "dynamic"
    freshness_score: int = 60
    confidence_score: int = 72
    evidence_count: int = 1
    last_updated: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict (cache documents, run records)."""
        data = asdict(self)
        data["last_updated"] = self.last_updated.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendConcept":
        """Rebuild a concept from :meth:`to_dict` output."""
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            why_hot=str(data.get("why_hot", "")),
            use_cases=list(data.get("use_cases") or []),
            keywords=list(data.get("keywords") or []),
            category=str(data.get("category", "technique")),
            hype_level=str(data.get("hype_level", "emerging")),
            source_type=str(data.get("source_type", "dynamic")),
            freshness_score=int(data.get("freshness_score", 60)),
            confidence_score=int(data.get("confidence_score", 72)),
            evidence_count=int(data.get("evidence_count", 1)),
            last_updated=parse_timestamp(data.get("last_updated")) or utc_now(),
        )

    def __repr__(self) -> str:
        return (
            f"TrendConcept(name='{self.name}', source={self.source_type}, "
            f"hype={self.hype_level}, freshness={self.freshness_score})"
        )


@dataclass
class CachedConceptSet:
    """The persisted concept-cache document (always written as a whole)."""

    concepts: List[TrendConcept]
    extracted_at: datetime
    expires_at: datetime
    raw_signal_count: int
    sources: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the stored document shape."""
        return {
            "concepts": [c.to_dict() for c in self.concepts],
            "extracted_at": self.extracted_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "raw_signal_count": self.raw_signal_count,
            "sources": list(self.sources),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CachedConceptSet":
        """
        Rebuild from a stored document.

        Raises:
            ValueError: If ``extracted_at`` is missing or unparsable.
        """
        extracted_at = parse_timestamp(doc.get("extracted_at"))
        if extracted_at is None:
            raise ValueError("Cached concept document has no valid extracted_at")
        expires_at = parse_timestamp(doc.get("expires_at")) or extracted_at
        return cls(
            concepts=[TrendConcept.from_dict(c) for c in doc.get("concepts") or []],
            extracted_at=extracted_at,
            expires_at=expires_at,
            raw_signal_count=int(doc.get("raw_signal_count", 0)),
            sources=list(doc.get("sources") or []),
        )


@dataclass
class CacheRead:
    """A cache entry as seen at read time."""

    entry: CachedConceptSet
    age_hours: float
    stale: bool


# =============================================================================
# COST ACCOUNTING
# =============================================================================


@dataclass
class TokenUsage:
    """Token counts reported by one generative-service call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class CostInfo:
    """Monetary cost of one or more generative-service calls."""

    input_tokens: int = 0
    output_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "CostInfo") -> "CostInfo":
        return CostInfo(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            input_cost=self.input_cost + other.input_cost,
            output_cost=self.output_cost + other.output_cost,
            total_cost=self.total_cost + other.total_cost,
            model=self.model or other.model,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_tokens"] = self.total_tokens
        return data


@dataclass
class StageCosts:
    """Per-stage cost breakdown of one pipeline run."""

    stage0_trend_pool: CostInfo = field(default_factory=CostInfo)
    stage1_profile: CostInfo = field(default_factory=CostInfo)
    stage1_5_matching: CostInfo = field(default_factory=CostInfo)
    stage2_gaps: CostInfo = field(default_factory=CostInfo)
    stage3_generation: CostInfo = field(default_factory=CostInfo)
    stage4_validation: CostInfo = field(default_factory=CostInfo)

    @property
    def total(self) -> CostInfo:
        total = CostInfo()
        for stage_cost in (
            self.stage0_trend_pool,
            self.stage1_profile,
            self.stage1_5_matching,
            self.stage2_gaps,
            self.stage3_generation,
            self.stage4_validation,
        ):
            total = total + stage_cost
        return total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage0_trend_pool": self.stage0_trend_pool.to_dict(),
            "stage1_profile": self.stage1_profile.to_dict(),
            "stage1_5_matching": self.stage1_5_matching.to_dict(),
            "stage2_gaps": self.stage2_gaps.to_dict(),
            "stage3_generation": self.stage3_generation.to_dict(),
            "stage4_validation": self.stage4_validation.to_dict(),
            "total": self.total.to_dict(),
        }


@dataclass
class ConceptFetchResult:
    """Outcome of :meth:`ConceptCache.get_or_refresh`."""

    concepts: List[TrendConcept]
    cached: bool
    stale: bool
    age_hours: float
    cost: CostInfo = field(default_factory=CostInfo)
    extracted_at: Optional[datetime] = None


@dataclass
class TrendPool:
    """Merged curated + dynamic concepts with the subset used for matching."""

    concepts: List[TrendConcept]
    selected_for_matching: List[TrendConcept]
    cached: bool = False
    stale: bool = False
    dynamic_extraction_failed: bool = False
    curated_count: int = 0
    dynamic_count: int = 0
    extraction_cost: CostInfo = field(default_factory=CostInfo)


# =============================================================================
# CALLER INPUT
# =============================================================================


@dataclass
class CompanyEnrichment:
    """Optional firmographic data about the company."""

    industry: Optional[str] = None
    industries: List[str] = field(default_factory=list)
    description: Optional[str] = None
    employee_count: Optional[int] = None
    employee_range: Optional[str] = None
    total_funding_formatted: Optional[str] = None
    latest_funding_stage: Optional[str] = None
    technologies: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)


@dataclass
class ContentSummary:
    """Optional summary of the company's existing blog content."""

    content_summary: Optional[str] = None
    is_technical: bool = False
    has_code_examples: bool = False
    has_diagrams: bool = False
    is_developer_focused: bool = False
    monthly_frequency: Optional[float] = None
    rating: Optional[str] = None


@dataclass
class IdeaRequest:
    """Input of one pipeline run."""

    company_id: str
    company_name: str
    website: str
    company_type: Optional[str] = None
    enrichment: Optional[CompanyEnrichment] = None
    content_summary: Optional[ContentSummary] = None
    specific_requirements: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdeaRequest":
        """Build a request from a plain mapping (CLI input files)."""
        enrichment = data.get("enrichment")
        summary = data.get("content_summary")
        return cls(
            company_id=str(data.get("company_id") or data.get("company_name", "")),
            company_name=str(data["company_name"]),
            website=str(data.get("website", "")),
            company_type=data.get("company_type"),
            enrichment=CompanyEnrichment(**enrichment) if enrichment else None,
            content_summary=ContentSummary(**summary) if summary else None,
            specific_requirements=data.get("specific_requirements"),
        )


# =============================================================================
# COMPANY RELEVANCE
# =============================================================================


@dataclass
class Differentiator:
    claim: str
    evidence: str
    category: str
    uniqueness_score: float


@dataclass
class TargetAudience:
    primary: str = "Technical decision makers"
    secondary: str = "Engineering managers"
    sophistication_level: str = "intermediate"
    job_titles: List[str] = field(default_factory=list)
    industries: List[str] = field(default_factory=list)


@dataclass
class ContentStyle:
    tone: str = "Technical and practical"
    technical_depth: str = "medium"
    format_preferences: List[str] = field(
        default_factory=lambda: ["Tutorials", "Implementation guides"]
    )
    topics_they_like: List[str] = field(default_factory=list)
    topics_to_avoid: List[str] = field(default_factory=list)


@dataclass
class CompanyProfile:
    """Sanitized company profile; every field is always populated."""

    company_name: str
    one_liner: str
    company_type: str
    tech_stack: List[str] = field(default_factory=list)
    differentiators: List[Differentiator] = field(default_factory=list)
    target_audience: TargetAudience = field(default_factory=TargetAudience)
    content_style: ContentStyle = field(default_factory=ContentStyle)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ContentGap:
    topic: str
    gap_type: str
    why_it_matters: str
    suggested_angle: str
    priority_score: float


@dataclass
class MatchedConcept:
    """A trend concept judged relevant to the company."""

    concept: TrendConcept
    fit_score: float
    fit_reason: str
    product_integration: str
    tutorial_angle: str
    from_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concept": self.concept.to_dict(),
            "fit_score": self.fit_score,
            "fit_reason": self.fit_reason,
            "product_integration": self.product_integration,
            "tutorial_angle": self.tutorial_angle,
            "from_fallback": self.from_fallback,
        }


@dataclass
class MatchOutcome:
    """Result of the concept-matching stage, including its debug trace."""

    matched: List[MatchedConcept]
    ranked_candidates: List[MatchedConcept]
    fallback_used: bool
    fallback_injected_count: int
    rejected_sample: List[str]
    cost: CostInfo = field(default_factory=CostInfo)


# =============================================================================
# IDEAS & VALIDATION
# =============================================================================


@dataclass(frozen=True)
class GeneratedIdea:
    """A sanitized blog-post idea.  Never mutated after creation."""

    title: str
    why_only_they_can_write_this: str
    specific_evidence: str
    target_gap: str
    audience_fit: str
    what_reader_learns: List[str]
    key_stack_tools: List[str]
    angle_to_avoid_duplication: str
    probability: float
    is_concept_tutorial: bool
    trend_evidence: str
    product_trend_integration: str
    trend_freshness_score: float
    source_concept_type: str
    differentiator_used: Optional[str] = None
    content_gap_filled: Optional[str] = None
    ai_concept: Optional[str] = None
    concept_fit_score: Optional[float] = None

    @property
    def counts_as_concept_tutorial(self) -> bool:
        """True when the idea is tied to a trend concept."""
        return self.is_concept_tutorial or bool(self.ai_concept)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationScores:
    company_relevance: float
    trend_freshness: float
    product_trend_integration: float
    audience_relevance: float
    developer_actionability: float
    overall_score: int = 0


@dataclass
class ValidationResult:
    idea: GeneratedIdea
    is_valid: bool
    scores: ValidationScores
    rejection_reason: Optional[str] = None
    improvement_suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "idea": self.idea.to_dict(),
            "is_valid": self.is_valid,
            "scores": asdict(self.scores),
            "rejection_reason": self.rejection_reason,
            "improvement_suggestion": self.improvement_suggestion,
        }


@dataclass
class ValidationOutcome:
    """Result of validating one batch of ideas."""

    results: List[ValidationResult]
    valid_count: int
    rejected_count: int
    top_rejection_reasons: List[str]
    cost: CostInfo = field(default_factory=CostInfo)


# =============================================================================
# PIPELINE RESULT
# =============================================================================


@dataclass
class PipelineResult:
    """Complete output of one pipeline run."""

    run_id: str
    success: bool
    ideas: List[GeneratedIdea]
    validation_results: List[ValidationResult]
    company_profile: CompanyProfile
    content_gaps: List[ContentGap]
    matched_concepts: List[MatchedConcept]
    trend_concepts_used: List[TrendConcept]
    debug: Dict[str, Any]
    cost_info: StageCosts
    regeneration_attempts: int
    rejected_count: int
    degraded_mode: bool
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict (CLI output, run records)."""
        return {
            "run_id": self.run_id,
            "success": self.success,
            "ideas": [idea.to_dict() for idea in self.ideas],
            "validation_results": [r.to_dict() for r in self.validation_results],
            "company_profile": self.company_profile.to_dict(),
            "content_gaps": [asdict(g) for g in self.content_gaps],
            "matched_concepts": [m.to_dict() for m in self.matched_concepts],
            "trend_concepts_used": [c.to_dict() for c in self.trend_concepts_used],
            "debug": self.debug,
            "cost_info": self.cost_info.to_dict(),
            "generated_at": self.generated_at.isoformat(),
            "regeneration_attempts": self.regeneration_attempts,
            "rejected_count": self.rejected_count,
            "degraded_mode": self.degraded_mode,
        }


# =============================================================================
# PIPELINE STATE (LangGraph TypedDict)
#
# The state object that flows through the LangGraph pipeline.  Every node
# reads from it and returns a partial update.
# =============================================================================


class PipelineState(TypedDict, total=False):
    """
    Pipeline state flowing through all graph nodes.

    ``total=False`` marks every key as optional so that the state can be
    incrementally populated as it flows through the graph.
    """

    # -----------------------------------------------------------------
    # RUN TRACKING
    # -----------------------------------------------------------------
    run_id: str
    run_timestamp: datetime
    stage: str
    request: IdeaRequest
    run_logger: Any  # PipelineRunLogger

    # -----------------------------------------------------------------
    # STAGE OUTPUTS
    # -----------------------------------------------------------------
    trend_pool: Optional[TrendPool]
    company_profile: Optional[CompanyProfile]
    match_outcome: Optional[MatchOutcome]
    content_gaps: List[ContentGap]

    # -----------------------------------------------------------------
    # ATTEMPT LOOP
    # -----------------------------------------------------------------
    attempt: int
    tracker: Any  # AttemptTracker
    current_ideas: List[GeneratedIdea]
    rejection_summary: Optional[str]
    generation_debug: List[Dict[str, Any]]
    validation_debug: List[Dict[str, Any]]

    # -----------------------------------------------------------------
    # COSTS / RESULT
    # -----------------------------------------------------------------
    costs: StageCosts
    result: Optional[PipelineResult]

    # -----------------------------------------------------------------
    # ERROR HANDLING
    # -----------------------------------------------------------------
    critical_error: Optional[str]
    error_stage: Optional[str]
