"""Tests for src.agents.signal_fetcher -- source isolation, ordering, dedup."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.agents.signal_fetcher import (
    SignalFetcher,
    create_signal_fetcher,
    deduplicate_signals,
    signal_dedup_key,
    sort_newest_first,
)
from src.config import SignalSourceConfig
from src.exceptions import SignalSourceError
from src.models import RawSignal

BASE = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def _signal(title, source="hackernews", hours_ago=0):
    return RawSignal(
        id=f"{source}_{abs(hash(title))}",
        title=title,
        summary="",
        url="https://example.com",
        source=source,
        published_at=BASE - timedelta(hours=hours_ago),
    )


def _fetcher(hn=None, arxiv=None, feeds=None):
    hackernews = MagicMock()
    hackernews.fetch_signals = AsyncMock(return_value=hn or [])
    arxiv_client = MagicMock()
    arxiv_client.fetch_signals = AsyncMock(return_value=arxiv or [])
    rss = MagicMock()
    feeds = feeds or {}
    rss.feed_keys = list(feeds)

    async def fetch_feed(key):
        result = feeds[key]
        if isinstance(result, Exception):
            raise result
        return result

    rss.fetch_feed = AsyncMock(side_effect=fetch_feed)
    return SignalFetcher(hackernews=hackernews, arxiv=arxiv_client, rss=rss)


# ===========================================================================
# Pure helpers
# ===========================================================================


class TestDedupKey:
    def test_strips_non_alphanumerics(self):
        assert signal_dedup_key("GPT-5: What's New?") == "gpt5whatsnew"

    def test_truncates_to_fifty_chars(self):
        assert len(signal_dedup_key("a" * 80)) == 50

    def test_empty_title(self):
        assert signal_dedup_key("") == ""


class TestDeduplicate:
    def test_first_occurrence_wins(self):
        first = _signal("MCP servers are everywhere", source="hackernews")
        dup = _signal("MCP Servers are everywhere!", source="rundown")
        other = _signal("Mixture of Experts returns")

        assert deduplicate_signals([first, dup, other]) == [first, other]

    def test_no_two_results_share_a_key(self):
        signals = [_signal(t) for t in ("A b", "a-B", "AB!", "c", "C")]
        keys = [signal_dedup_key(s.title) for s in deduplicate_signals(signals)]
        assert len(keys) == len(set(keys)) == 2


def test_sort_newest_first():
    old, new, mid = _signal("old", hours_ago=10), _signal("new"), _signal("mid", hours_ago=3)
    assert sort_newest_first([old, new, mid]) == [new, mid, old]


# ===========================================================================
# SignalFetcher
# ===========================================================================


class TestSignalFetcher:
    @pytest.mark.asyncio
    async def test_merges_all_sources_newest_first(self):
        fetcher = _fetcher(
            hn=[_signal("hn", hours_ago=5)],
            arxiv=[_signal("paper", source="arxiv", hours_ago=1)],
            feeds={"rundown": [_signal("letter", source="rundown", hours_ago=3)]},
        )

        signals = await fetcher.fetch_all()

        assert [s.title for s in signals] == ["paper", "letter", "hn"]

    @pytest.mark.asyncio
    async def test_failing_source_contributes_empty_list(self):
        fetcher = _fetcher(
            hn=[_signal("hn")],
            feeds={
                "rundown": SignalSourceError("feed down"),
                "importai": [_signal("letter", source="importai")],
            },
        )
        fetcher.arxiv.fetch_signals.side_effect = TimeoutError("slow")

        by_source = await fetcher.fetch_by_source()

        assert by_source["arxiv"] == []
        assert by_source["rundown"] == []
        assert [s.title for s in by_source["importai"]] == ["letter"]
        assert len(await fetcher.fetch_all()) == 2

    @pytest.mark.asyncio
    async def test_all_sources_failing_yields_empty(self):
        fetcher = _fetcher()
        fetcher.hackernews.fetch_signals.side_effect = RuntimeError("x")
        fetcher.arxiv.fetch_signals.side_effect = RuntimeError("y")
        assert await fetcher.fetch_all() == []

    @pytest.mark.asyncio
    async def test_each_feed_fetched_by_key(self):
        fetcher = _fetcher(feeds={"rundown": [], "importai": []})
        await fetcher.fetch_all()
        fetched = sorted(call.args[0] for call in fetcher.rss.fetch_feed.await_args_list)
        assert fetched == ["importai", "rundown"]

    def test_source_names(self):
        fetcher = _fetcher(feeds={"rundown": [], "importai": []})
        assert fetcher.source_names == ["hackernews", "arxiv", "rundown", "importai"]


def test_create_signal_fetcher_uses_config():
    config = SignalSourceConfig(
        rss_feeds={"rundown": "https://rss.example.com/rundown"},
        arxiv_max_results=7,
    )
    fetcher = create_signal_fetcher(config)
    assert fetcher.source_names == ["hackernews", "arxiv", "rundown"]
    assert fetcher.arxiv.max_results == 7
