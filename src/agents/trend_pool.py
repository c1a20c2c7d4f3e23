"""
Trend Pool Builder -- merges curated and dynamic concepts into one ranked pool.

A fixed list of curated concepts is always present, so a pool exists even
when dynamic extraction has never succeeded.  Dynamic concepts come from
the concept cache.  The merged list is deduplicated by normalized name and
ranked by a blend of freshness and confidence; the top K go to matching.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Dict, List, Optional

from src.agents.concept_cache import ConceptCache
from src.config import FusionThresholds
from src.exceptions import PipelineBaseError
from src.models import CostInfo, TrendConcept, TrendPool
from src.utils import normalize_concept_name, utc_now

logger = logging.getLogger("TrendPool")

HYPE_FRESHNESS: Dict[str, int] = {
    "peak": 90,
    "emerging": 85,
    "maturing": 70,
    "declining": 45,
}
DEFAULT_FRESHNESS = 60


# =========================================================================
# CURATED CONCEPTS
# =========================================================================

CURATED_TREND_CONCEPTS: List[Dict[str, object]] = [
    {
        "name": "Agentic AI",
        "description": "Autonomous or semi-autonomous agents that plan and execute multi-step work.",
        "why_hot": "Teams are moving from single prompts to multi-step AI workflows with tool execution.",
        "use_cases": [
            "Autonomous ops workflows",
            "Lead qualification assistants",
            "Data pipeline orchestration",
        ],
        "keywords": ["agentic", "agents", "workflow", "orchestration", "tools"],
        "category": "paradigm",
        "hype_level": "peak",
    },
    {
        "name": "Model Context Protocol (MCP)",
        "description": "A standardized protocol for exposing tools and context to AI systems.",
        "why_hot": "MCP is becoming the practical interoperability layer for tool-enabled AI apps.",
        "use_cases": [
            "Tool access for agents",
            "Enterprise data context access",
            "Multi-tool orchestration",
        ],
        "keywords": ["mcp", "protocol", "tools", "context", "interoperability"],
        "category": "protocol",
        "hype_level": "peak",
    },
    {
        "name": "A2A Agent Interoperability",
        "description": "Patterns and protocols for communication between specialized AI agents.",
        "why_hot": "Production systems increasingly require teams of agents with clear handoffs.",
        "use_cases": [
            "Agent handoffs",
            "Task specialization networks",
            "Multi-agent enterprise flows",
        ],
        "keywords": ["a2a", "agents", "interoperability", "coordination"],
        "category": "protocol",
        "hype_level": "emerging",
    },
    {
        "name": "Long Context Optimization",
        "description": "Techniques for using very large context windows efficiently and reliably.",
        "why_hot": "New models support larger windows, but teams need practical memory strategies.",
        "use_cases": [
            "Knowledge-heavy copilots",
            "Large document QA",
            "Persistent workspace memory",
        ],
        "keywords": ["long context", "memory", "chunking", "retrieval"],
        "category": "technique",
        "hype_level": "peak",
    },
    {
        "name": "Inference-Time Compute",
        "description": "Dynamic compute allocation at inference to improve quality and cost efficiency.",
        "why_hot": "Teams are balancing latency, cost, and reasoning depth in production AI.",
        "use_cases": [
            "Dynamic routing",
            "Cost-aware generation",
            "Latency optimization",
        ],
        "keywords": ["inference", "routing", "latency", "optimization"],
        "category": "technique",
        "hype_level": "maturing",
    },
    {
        "name": "Edge and On-Device LLMs",
        "description": "Running LLM-powered workloads on client devices for speed and privacy.",
        "why_hot": "Enterprises increasingly need lower latency and tighter privacy boundaries.",
        "use_cases": [
            "Mobile AI assistants",
            "Privacy-sensitive AI",
            "Offline model inference",
        ],
        "keywords": ["edge", "on-device", "tinyllm", "privacy", "latency"],
        "category": "architecture",
        "hype_level": "emerging",
    },
    {
        "name": "GPT-5 Transition Patterns",
        "description": "Migration and architecture decisions when moving from older GPT stacks to GPT-5 workflows.",
        "why_hot": "Teams need practical migration playbooks, evals, and reliability guardrails.",
        "use_cases": [
            "Model migration",
            "Evaluation pipelines",
            "Reliability rollouts",
        ],
        "keywords": ["gpt-5", "migration", "evals", "reliability"],
        "category": "tool",
        "hype_level": "peak",
    },
    {
        "name": "Claude 4.1 Production Guardrails",
        "description": "Operational design patterns for safer, more controllable assistant behavior in production.",
        "why_hot": "Quality teams need tighter control and observability for enterprise usage.",
        "use_cases": [
            "Safety guardrails",
            "Prompt policy enforcement",
            "Enterprise assistant governance",
        ],
        "keywords": ["claude", "guardrails", "safety", "governance"],
        "category": "tool",
        "hype_level": "peak",
    },
]


# =========================================================================
# PURE HELPERS
# =========================================================================


def hype_to_freshness(hype_level: Optional[str]) -> int:
    """Map a hype level to a freshness score (unknown levels score 60)."""
    return HYPE_FRESHNESS.get((hype_level or "").lower(), DEFAULT_FRESHNESS)


def make_curated_concepts(thresholds: Optional[FusionThresholds] = None) -> List[TrendConcept]:
    """Materialize the curated list with fresh ids and curated scoring."""
    thresholds = thresholds or FusionThresholds()
    stamp_ms = int(time.time() * 1000)
    now = utc_now()
    return [
        TrendConcept(
            id=f"curated_{idx}_{stamp_ms}",
            name=str(item["name"]),
            description=str(item["description"]),
            why_hot=str(item["why_hot"]),
            use_cases=list(item["use_cases"]),  # type: ignore[arg-type]
            keywords=list(item["keywords"]),  # type: ignore[arg-type]
            category=str(item["category"]),
            hype_level=str(item["hype_level"]),
            source_type="curated",
            freshness_score=hype_to_freshness(str(item["hype_level"])),
            confidence_score=thresholds.curated_confidence,
            evidence_count=thresholds.curated_evidence_count,
            last_updated=now,
        )
        for idx, item in enumerate(CURATED_TREND_CONCEPTS)
    ]


def as_dynamic_concepts(
    concepts: List[TrendConcept],
    thresholds: Optional[FusionThresholds] = None,
) -> List[TrendConcept]:
    """Re-score cached concepts as dynamic pool members."""
    thresholds = thresholds or FusionThresholds()
    return [
        replace(
            concept,
            source_type="dynamic",
            freshness_score=hype_to_freshness(concept.hype_level),
            confidence_score=thresholds.dynamic_confidence,
            evidence_count=thresholds.dynamic_evidence_count,
        )
        for concept in concepts
    ]


def dedupe_concepts(concepts: List[TrendConcept]) -> List[TrendConcept]:
    """
    Keep one concept per normalized name.

    A dynamic concept always beats a curated one, in either order.  Between
    concepts of the same source type the incoming one wins only with a
    strictly higher ``freshness + confidence``.
    The first-seen position of each name is kept.
    """
    by_name: Dict[str, TrendConcept] = {}
    for concept in concepts:
        key = normalize_concept_name(concept.name)
        existing = by_name.get(key)
        if existing is None:
            by_name[key] = concept
            continue
        if existing.source_type != concept.source_type:
            if concept.source_type == "dynamic":
                by_name[key] = concept
            continue
        if (concept.freshness_score + concept.confidence_score
                > existing.freshness_score + existing.confidence_score):
            by_name[key] = concept
    return list(by_name.values())


def pool_score(concept: TrendConcept, thresholds: Optional[FusionThresholds] = None) -> float:
    thresholds = thresholds or FusionThresholds()
    return (
        concept.freshness_score * thresholds.pool_freshness_weight
        + concept.confidence_score * thresholds.pool_confidence_weight
    )


def rank_concepts(
    concepts: List[TrendConcept],
    thresholds: Optional[FusionThresholds] = None,
) -> List[TrendConcept]:
    """Sort by blended pool score, highest first (stable)."""
    thresholds = thresholds or FusionThresholds()
    return sorted(concepts, key=lambda c: pool_score(c, thresholds), reverse=True)


def merge_pool(
    curated: List[TrendConcept],
    dynamic: List[TrendConcept],
    thresholds: Optional[FusionThresholds] = None,
) -> List[TrendConcept]:
    """Deduplicate curated + dynamic concepts and rank the result."""
    thresholds = thresholds or FusionThresholds()
    return rank_concepts(dedupe_concepts([*curated, *dynamic]), thresholds)


# =========================================================================
# BUILDER
# =========================================================================


class TrendPoolBuilder:
    """
    Build the per-run trend concept pool.

    Args:
        cache: Concept cache providing dynamic concepts.  ``None`` builds a
            curated-only pool.
        thresholds: Pool weights, confidences and top-K size.
        max_age_hours: Freshness window passed to the cache.
        refresh_timeout: Upper bound in seconds on a concept refresh; a
            slower refresh degrades to the stale entry or the curated list.
            ``None`` uses the cache's own bound.
    """

    def __init__(
        self,
        cache: Optional[ConceptCache],
        thresholds: Optional[FusionThresholds] = None,
        max_age_hours: Optional[float] = None,
        refresh_timeout: Optional[float] = None,
    ) -> None:
        self.cache = cache
        self.thresholds = thresholds or FusionThresholds()
        self.max_age_hours = max_age_hours
        self.refresh_timeout = refresh_timeout
        self.logger = logging.getLogger("TrendPool")

    async def build(self) -> TrendPool:
        """Merge curated and dynamic concepts.  Never raises for cache failures."""
        curated = make_curated_concepts(self.thresholds)

        dynamic: List[TrendConcept] = []
        cached = False
        stale = False
        extraction_failed = False
        cost = CostInfo()

        if self.cache is None:
            extraction_failed = True
        else:
            try:
                fetched = await self.cache.get_or_refresh(
                    self.max_age_hours, extraction_timeout=self.refresh_timeout
                )
                dynamic = as_dynamic_concepts(fetched.concepts, self.thresholds)
                cached = fetched.cached
                stale = fetched.stale
                cost = fetched.cost
            except PipelineBaseError as exc:
                self.logger.warning(
                    "[POOL] Dynamic trend extraction failed, using curated only: %s", exc
                )
                extraction_failed = True

        merged = merge_pool(curated, dynamic, self.thresholds)
        selected = merged[: self.thresholds.pool_top_k]

        self.logger.info(
            "[POOL] %d concepts (%d curated, %d dynamic), %d selected for matching%s",
            len(merged),
            len(curated),
            len(dynamic),
            len(selected),
            " [stale cache]" if stale else "",
        )
        return TrendPool(
            concepts=merged,
            selected_for_matching=selected,
            cached=cached,
            stale=stale,
            dynamic_extraction_failed=extraction_failed,
            curated_count=len(curated),
            dynamic_count=len(dynamic),
            extraction_cost=cost,
        )


__all__ = [
    "CURATED_TREND_CONCEPTS",
    "HYPE_FRESHNESS",
    "TrendPoolBuilder",
    "as_dynamic_concepts",
    "dedupe_concepts",
    "hype_to_freshness",
    "make_curated_concepts",
    "merge_pool",
    "pool_score",
    "rank_concepts",
]
