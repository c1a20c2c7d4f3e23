"""
Signal Fetcher -- collects recent AI news signals from every source.

Queries Hacker News, arXiv and each configured newsletter feed
concurrently.  Sources are totally isolated: a failing source contributes
an empty list and a warning, never an exception.  The merged signals are
sorted newest first; deduplication by normalized title is a separate,
pure step (:func:`deduplicate_signals`).
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from src.config import SignalSourceConfig
from src.models import RawSignal
from src.tools.arxiv import ArxivClient
from src.tools.hackernews import HackerNewsClient
from src.tools.rss import RSSFeedClient

logger = logging.getLogger("SignalFetcher")

DEDUP_KEY_LENGTH = 50
_NON_ALNUM = re.compile(r"[^a-z0-9]")


# =========================================================================
# PURE HELPERS
# =========================================================================


def signal_dedup_key(title: str) -> str:
    """Lowercase title with everything outside ``[a-z0-9]`` removed, first 50 chars."""
    return _NON_ALNUM.sub("", (title or "").lower())[:DEDUP_KEY_LENGTH]


def deduplicate_signals(signals: List[RawSignal]) -> List[RawSignal]:
    """Drop signals whose dedup key was already seen (first occurrence wins)."""
    seen: set = set()
    unique: List[RawSignal] = []
    for signal in signals:
        key = signal_dedup_key(signal.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(signal)
    return unique


def sort_newest_first(signals: List[RawSignal]) -> List[RawSignal]:
    return sorted(signals, key=lambda s: s.published_at, reverse=True)


# =========================================================================
# FETCHER
# =========================================================================


class SignalFetcher:
    """
    Fetch signals from every source in parallel.

    Args:
        hackernews: Hacker News client.
        arxiv: arXiv client.
        rss: Newsletter feed client (one source per configured feed key).
    """

    def __init__(
        self,
        hackernews: HackerNewsClient,
        arxiv: ArxivClient,
        rss: RSSFeedClient,
    ) -> None:
        self.hackernews = hackernews
        self.arxiv = arxiv
        self.rss = rss
        self.logger = logging.getLogger("SignalFetcher")

    @property
    def source_names(self) -> List[str]:
        return [HackerNewsClient.SOURCE, ArxivClient.SOURCE, *self.rss.feed_keys]

    def _source_calls(self) -> List[Tuple[str, Callable[[], Awaitable[List[RawSignal]]]]]:
        calls: List[Tuple[str, Callable[[], Awaitable[List[RawSignal]]]]] = [
            (HackerNewsClient.SOURCE, self.hackernews.fetch_signals),
            (ArxivClient.SOURCE, self.arxiv.fetch_signals),
        ]
        for feed_key in self.rss.feed_keys:
            calls.append((feed_key, lambda key=feed_key: self.rss.fetch_feed(key)))
        return calls

    async def fetch_by_source(self) -> Dict[str, List[RawSignal]]:
        """Fetch every source concurrently; failures map to an empty list."""
        calls = self._source_calls()
        results = await asyncio.gather(
            *(call() for _, call in calls), return_exceptions=True
        )

        by_source: Dict[str, List[RawSignal]] = {}
        for (name, _), result in zip(calls, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self.logger.warning("[SIGNALS] Source %s failed: %s", name, result)
                by_source[name] = []
            else:
                by_source[name] = list(result)
        return by_source

    async def fetch_all(self) -> List[RawSignal]:
        """All signals from all sources, newest first (not deduplicated)."""
        by_source = await self.fetch_by_source()
        merged = [signal for signals in by_source.values() for signal in signals]
        self.logger.info(
            "[SIGNALS] Fetched %d signals (%s)",
            len(merged),
            ", ".join(f"{name}={len(items)}" for name, items in by_source.items()),
        )
        return sort_newest_first(merged)


# =============================================================================
# FACTORY FUNCTION
# =============================================================================


def create_signal_fetcher(config: Optional[SignalSourceConfig] = None) -> SignalFetcher:
    """Build a :class:`SignalFetcher` from the source configuration."""
    config = config or SignalSourceConfig()
    return SignalFetcher(
        hackernews=HackerNewsClient(
            base_url=config.hackernews_url,
            query=config.hackernews_query,
            hits_per_page=config.hackernews_hits,
            min_points=config.hackernews_min_points,
            summary_max_chars=config.summary_max_chars,
            timeout=config.http_timeout_seconds,
        ),
        arxiv=ArxivClient(
            categories=config.arxiv_categories,
            max_results=config.arxiv_max_results,
            summary_max_chars=config.summary_max_chars,
        ),
        rss=RSSFeedClient(
            feeds=config.rss_feeds,
            items_per_feed=config.rss_items_per_feed,
            summary_max_chars=config.summary_max_chars,
            timeout=config.http_timeout_seconds,
        ),
    )


__all__ = [
    "SignalFetcher",
    "create_signal_fetcher",
    "deduplicate_signals",
    "signal_dedup_key",
    "sort_newest_first",
]
