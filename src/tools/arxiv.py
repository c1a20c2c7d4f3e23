"""
Async ArXiv paper search client.

Wraps the synchronous ``arxiv`` Python library with ``asyncio.to_thread``
so that it integrates with the async pipeline.  The signal fetcher uses
this client to pick up the newest research papers in the AI/ML categories.

Default categories: cs.AI, cs.CL, cs.LG
"""

import asyncio
import logging
import re
from typing import Any, List, Optional

import arxiv

from src.exceptions import SignalSourceError
from src.models import RawSignal
from src.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class ArxivClient:
    """Async ArXiv search client returning the newest papers as signals.

    Args:
        categories: ArXiv category filters.  Defaults to
            ``["cs.AI", "cs.CL", "cs.LG"]``.
        max_results: Number of papers requested.
        summary_max_chars: Abstract truncation length.

    Usage::

        client = ArxivClient()
        signals = await client.fetch_signals()
    """

    SOURCE = "arxiv"

    def __init__(
        self,
        categories: Optional[List[str]] = None,
        max_results: int = 15,
        summary_max_chars: int = 300,
    ) -> None:
        self.categories: List[str] = categories or ["cs.AI", "cs.CL", "cs.LG"]
        self.max_results = max_results
        self.summary_max_chars = summary_max_chars

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def build_query(self) -> str:
        """Category filter query, e.g. ``cat:cs.AI OR cat:cs.CL``."""
        return " OR ".join(f"cat:{cat}" for cat in self.categories)

    async def fetch_signals(self) -> List[RawSignal]:
        """Return the newest papers across the configured categories.

        Raises:
            SignalSourceError: If the arXiv API call fails.
        """
        query = self.build_query()

        def _search() -> List[RawSignal]:
            client = arxiv.Client()
            search = arxiv.Search(
                query=query,
                max_results=self.max_results,
                sort_by=arxiv.SortCriterion.SubmittedDate,
                sort_order=arxiv.SortOrder.Descending,
            )
            return [self._result_to_signal(result) for result in client.results(search)]

        try:
            signals = await asyncio.to_thread(_search)
        except (arxiv.ArxivError, OSError) as exc:
            raise SignalSourceError(f"arXiv fetch failed: {exc}") from exc

        logger.info("[ARXIV] Fetched %d papers (%s)", len(signals), query)
        return signals

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _result_to_signal(self, result: Any) -> RawSignal:
        """Convert an ``arxiv.Result`` to a :class:`RawSignal`."""
        entry_id = result.entry_id
        paper_id = entry_id.split("/abs/")[-1] if "/abs/" in entry_id else entry_id
        summary = _WHITESPACE.sub(" ", result.summary or "").strip()
        return RawSignal(
            id=f"arxiv_{paper_id}",
            title=_WHITESPACE.sub(" ", result.title or "").strip() or "Untitled",
            summary=summary[: self.summary_max_chars],
            url=f"https://arxiv.org/abs/{paper_id}",
            source=self.SOURCE,
            published_at=ensure_utc(result.published) if result.published else utc_now(),
        )
