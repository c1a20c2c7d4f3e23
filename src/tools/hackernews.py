"""
Async Hacker News search client (Algolia search API).

Uses ``httpx`` to query the public Algolia endpoint for recent AI stories
above a points threshold and converts hits into :class:`RawSignal` items.

Failures raise :class:`~src.exceptions.SignalSourceError`; the signal
fetcher isolates them so one dead source never blocks the others.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from src.exceptions import SignalSourceError
from src.models import RawSignal
from src.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

HN_ITEM_URL = "https://news.ycombinator.com/item?id={id}"


class HackerNewsClient:
    """Async wrapper around the Hacker News Algolia search API.

    Args:
        base_url: Search endpoint.
        query: Default search query.
        hits_per_page: Number of stories requested.
        min_points: Only stories with more points than this are returned.
        timeout: HTTP timeout in seconds.
        transport: Optional ``httpx`` transport (tests use ``MockTransport``).

    Usage::

        client = HackerNewsClient()
        signals = await client.fetch_signals()
    """

    SOURCE = "hackernews"

    def __init__(
        self,
        base_url: str = "https://hn.algolia.com/api/v1/search",
        query: str = 'AI OR LLM OR "machine learning" OR "artificial intelligence"',
        hits_per_page: int = 20,
        min_points: int = 50,
        summary_max_chars: int = 300,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.query = query
        self.hits_per_page = hits_per_page
        self.min_points = min_points
        self.summary_max_chars = summary_max_chars
        self.timeout = timeout
        self._transport = transport

    async def fetch_signals(self, query: Optional[str] = None) -> List[RawSignal]:
        """Fetch recent stories matching ``query`` (or the default query).

        Raises:
            SignalSourceError: On transport errors, non-2xx responses or an
                unexpected payload.
        """
        params = {
            "query": query or self.query,
            "tags": "story",
            "hitsPerPage": str(self.hits_per_page),
            "numericFilters": f"points>{self.min_points}",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SignalSourceError(f"Hacker News fetch failed: {exc}") from exc

        hits = data.get("hits") if isinstance(data, dict) else None
        if not isinstance(hits, list):
            raise SignalSourceError("Hacker News response has no 'hits' list")

        signals = [self._hit_to_signal(hit) for hit in hits if isinstance(hit, dict)]
        logger.info("[HN] Fetched %d stories", len(signals))
        return signals

    def _hit_to_signal(self, hit: Dict[str, Any]) -> RawSignal:
        object_id = str(hit.get("objectID", ""))
        points = hit.get("points") or 0
        comments = hit.get("num_comments") or 0
        story_text = (hit.get("story_text") or "").strip()
        summary = (
            story_text[: self.summary_max_chars]
            if story_text
            else f"Discussion on Hacker News with {points} points and {comments} comments."
        )
        return RawSignal(
            id=f"hn_{object_id}",
            title=hit.get("title") or "Untitled",
            summary=summary,
            url=hit.get("url") or HN_ITEM_URL.format(id=object_id),
            source=self.SOURCE,
            published_at=parse_timestamp(hit.get("created_at")) or utc_now(),
            score=float(points),
        )
