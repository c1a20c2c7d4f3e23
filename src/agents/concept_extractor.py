"""
Concept Extractor -- turns raw news signals into named AI concepts.

One generative call reads the newest signals and returns the distinct
*concepts* behind them (paradigms, techniques, protocols, architectures,
tools) rather than the news items themselves.

Error philosophy
----------------
Empty or malformed model output, or output with no usable concept, raises
``ConceptExtractionError``.  The concept cache decides whether a stale
entry can stand in.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.agents.signal_fetcher import SignalFetcher, deduplicate_signals
from src.exceptions import ConceptExtractionError, GenerationError
from src.models import CostInfo, HYPE_LEVELS, RawSignal, TrendConcept
from src.tools.claude_client import ClaudeClient
from src.utils import utc_now

logger = logging.getLogger("ConceptExtractor")

# =========================================================================
# PROMPTS
# =========================================================================

EXTRACTION_SYSTEM_PROMPT = (
    "You are an AI trends analyst. Extract distinct AI concepts from news "
    "signals. Output only valid JSON."
)

EXTRACTION_PROMPT = """Analyze these recent AI news items and papers and extract the TOP 8-10 distinct AI CONCEPTS that are currently hot or gaining traction.

Extract CONCEPTS, not news articles. Focus on:
- Paradigms (Agentic AI, Multimodal AI)
- Techniques (RAG, Fine-tuning, RLHF)
- Protocols (MCP, A2A)
- Architectures (Mixture of Experts)
- Tools/Frameworks (LangChain, LlamaIndex, CrewAI)

Not acceptable: company announcements, product launches, general news.

For each concept provide:
1. name: short memorable name (2-4 words)
2. description: 1-2 sentences on what it IS
3. whyHot: why it is trending NOW
4. useCases: 3-4 practical applications
5. keywords: technical terms for matching against company tech stacks
6. category: paradigm | technique | protocol | architecture | tool
7. hypeLevel: emerging | peak | maturing | declining

Rules:
- Concepts must be actionable for B2B companies and specific enough for tutorials.
- Each concept must be distinct (no "AI Agents" next to "Agentic AI").

RAW SIGNALS:
{signals}

Return JSON:
{{
  "concepts": [
    {{
      "name": "string",
      "description": "string",
      "whyHot": "string",
      "useCases": ["string", "string", "string"],
      "keywords": ["string", "string"],
      "category": "paradigm | technique | protocol | architecture | tool",
      "hypeLevel": "emerging | peak | maturing | declining"
    }}
  ]
}}"""

# Priority order used by top_concepts()
HYPE_PRIORITY: Dict[str, int] = {"peak": 0, "emerging": 1, "maturing": 2, "declining": 3}


@dataclass
class ExtractionOutcome:
    """Concepts extracted in one fetch-and-extract pass."""

    concepts: List[TrendConcept]
    raw_signal_count: int
    cost: CostInfo = field(default_factory=CostInfo)


# =========================================================================
# PURE HELPERS
# =========================================================================


def format_signals(signals: List[RawSignal], limit: int = 40) -> str:
    """Numbered ``[source] title`` + indented summary lines for the prompt."""
    return "\n\n".join(
        f"{i}. [{s.source}] {s.title}\n   {s.summary}"
        for i, s in enumerate(signals[:limit], start=1)
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def sanitize_concept(raw: Any, index: int, stamp_ms: int) -> Optional[TrendConcept]:
    """Build a dynamic concept from one model item, or ``None`` if it has no name."""
    if not isinstance(raw, dict):
        return None
    name = str(raw.get("name") or "").strip()
    if not name:
        return None
    return TrendConcept(
        id=f"concept_{stamp_ms}_{index}",
        name=name,
        description=str(raw.get("description") or "").strip(),
        why_hot=str(raw.get("whyHot") or "").strip(),
        use_cases=_string_list(raw.get("useCases")),
        keywords=_string_list(raw.get("keywords")),
        category=str(raw.get("category") or "technique").strip().lower(),
        hype_level=str(raw.get("hypeLevel") or "").strip().lower(),
        source_type="dynamic",
        last_updated=utc_now(),
    )


def filter_concepts_by_category(concepts: List[TrendConcept], category: str) -> List[TrendConcept]:
    return [c for c in concepts if c.category == category]


def filter_concepts_by_hype(concepts: List[TrendConcept], hype_levels: List[str]) -> List[TrendConcept]:
    wanted = set(hype_levels)
    return [c for c in concepts if c.hype_level in wanted]


def top_concepts(concepts: List[TrendConcept], n: int = 10) -> List[TrendConcept]:
    """First ``n`` concepts ordered peak, emerging, maturing, declining (stable)."""
    ordered = sorted(concepts, key=lambda c: HYPE_PRIORITY.get(c.hype_level, len(HYPE_LEVELS)))
    return ordered[:n]


# =========================================================================
# EXTRACTOR
# =========================================================================


class ConceptExtractor:
    """
    Extract named AI concepts from news signals.

    Args:
        claude: Generative client.
        fetcher: Signal fetcher used by :meth:`fetch_and_extract`.
        model: Model for the extraction call (a cheaper model is enough).
        signal_limit: Maximum number of signals included in the prompt.
    """

    def __init__(
        self,
        claude: ClaudeClient,
        fetcher: SignalFetcher,
        model: Optional[str] = None,
        signal_limit: int = 40,
    ) -> None:
        self.claude = claude
        self.fetcher = fetcher
        self.model = model
        self.signal_limit = signal_limit
        self.logger = logging.getLogger("ConceptExtractor")

    @property
    def source_names(self) -> List[str]:
        return self.fetcher.source_names

    async def extract(self, signals: List[RawSignal]) -> ExtractionOutcome:
        """Extract concepts from ``signals`` with one generative call.

        Raises:
            ConceptExtractionError: On empty/malformed output or no usable concepts.
        """
        prompt = EXTRACTION_PROMPT.format(signals=format_signals(signals, self.signal_limit))
        self.logger.info("[EXTRACT] Extracting concepts from %d signals", len(signals))

        try:
            data, cost = await self.claude.invoke_json(
                system=EXTRACTION_SYSTEM_PROMPT,
                prompt=prompt,
                temperature=0.3,
                max_tokens=3000,
                model=self.model,
            )
        except GenerationError as exc:
            raise ConceptExtractionError(f"Concept extraction failed: {exc}") from exc

        raw_concepts = data.get("concepts")
        if not isinstance(raw_concepts, list):
            raise ConceptExtractionError("Extraction response has no 'concepts' list")

        stamp_ms = int(time.time() * 1000)
        concepts = [
            concept
            for concept in (
                sanitize_concept(raw, index, stamp_ms)
                for index, raw in enumerate(raw_concepts)
            )
            if concept is not None
        ]
        if not concepts:
            raise ConceptExtractionError("Extraction returned no usable concepts")

        self.logger.info(
            "[EXTRACT] Extracted %d concepts, cost: $%.4f", len(concepts), cost.total_cost
        )
        return ExtractionOutcome(concepts=concepts, raw_signal_count=len(signals), cost=cost)

    async def fetch_and_extract(self) -> ExtractionOutcome:
        """Fetch every source, deduplicate, then extract.

        Raises:
            ConceptExtractionError: If no signal survives or extraction fails.
        """
        signals = deduplicate_signals(await self.fetcher.fetch_all())
        if not signals:
            raise ConceptExtractionError("No signals available from any source")
        return await self.extract(signals)


__all__ = [
    "ConceptExtractor",
    "ExtractionOutcome",
    "EXTRACTION_PROMPT",
    "filter_concepts_by_category",
    "filter_concepts_by_hype",
    "format_signals",
    "sanitize_concept",
    "top_concepts",
]
