"""
Async RSS/Atom newsletter client.

Downloads feeds with ``httpx`` and parses them with ``feedparser``.  Each
configured feed key (``rundown``, ``importai``...) becomes the ``source`` of
the signals it produces.
"""

import asyncio
import base64
import calendar
import html
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import feedparser
import httpx

from src.exceptions import SignalSourceError
from src.models import RawSignal
from src.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def clean_html(text: str) -> str:
    """Strip tags, unescape entities and collapse whitespace."""
    without_tags = _TAG.sub(" ", text or "")
    return _WHITESPACE.sub(" ", html.unescape(without_tags)).strip()


def entry_signal_id(feed_key: str, guid: str) -> str:
    """Stable id: ``<feed>_<first 20 chars of base64(guid)>``."""
    encoded = base64.b64encode(guid.encode("utf-8")).decode("ascii")
    return f"{feed_key}_{encoded[:20]}"


def _entry_published(entry: Any) -> datetime:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    return parse_timestamp(entry.get("published") or entry.get("updated")) or utc_now()


class RSSFeedClient:
    """Fetch and parse newsletter feeds into signals.

    Args:
        feeds: Mapping of feed key to feed URL.
        items_per_feed: Entries kept per feed (newest first as published).
        summary_max_chars: Summary truncation length.
        timeout: HTTP timeout in seconds.
        transport: Optional ``httpx`` transport (tests use ``MockTransport``).

    Usage::

        client = RSSFeedClient({"importai": "https://importai.substack.com/feed"})
        signals = await client.fetch_feed("importai")
    """

    def __init__(
        self,
        feeds: Dict[str, str],
        items_per_feed: int = 10,
        summary_max_chars: int = 300,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.feeds = dict(feeds)
        self.items_per_feed = items_per_feed
        self.summary_max_chars = summary_max_chars
        self.timeout = timeout
        self._transport = transport

    @property
    def feed_keys(self) -> List[str]:
        return list(self.feeds)

    async def fetch_feed(self, feed_key: str) -> List[RawSignal]:
        """Download and parse a single configured feed.

        Raises:
            SignalSourceError: On unknown key, HTTP failure or an unparsable feed.
        """
        url = self.feeds.get(feed_key)
        if not url:
            raise SignalSourceError(f"Unknown RSS feed '{feed_key}'")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                content = response.text
        except httpx.HTTPError as exc:
            raise SignalSourceError(f"RSS feed '{feed_key}' fetch failed: {exc}") from exc

        feed = await asyncio.to_thread(feedparser.parse, content)
        if feed.get("bozo") and not feed.entries:
            raise SignalSourceError(
                f"RSS feed '{feed_key}' could not be parsed: {feed.get('bozo_exception')}"
            )

        signals = [
            self._entry_to_signal(feed_key, entry)
            for entry in feed.entries[: self.items_per_feed]
        ]
        logger.info("[RSS] %s: %d entries", feed_key, len(signals))
        return signals

    def _entry_to_signal(self, feed_key: str, entry: Any) -> RawSignal:
        link = entry.get("link") or ""
        guid = entry.get("id") or link or entry.get("title", "")
        summary = clean_html(entry.get("summary") or entry.get("description") or "")
        return RawSignal(
            id=entry_signal_id(feed_key, guid),
            title=clean_html(entry.get("title") or "") or "Untitled",
            summary=summary[: self.summary_max_chars],
            url=link,
            source=feed_key,
            published_at=_entry_published(entry),
        )
