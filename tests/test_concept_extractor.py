"""Tests for src.agents.concept_extractor."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.agents.concept_extractor import (
    ConceptExtractor,
    filter_concepts_by_category,
    filter_concepts_by_hype,
    format_signals,
    sanitize_concept,
    top_concepts,
)
from src.exceptions import ConceptExtractionError, EmptyResponseError
from src.models import RawSignal


def _signal(title, source="hackernews", summary="summary text"):
    return RawSignal(
        id=title,
        title=title,
        summary=summary,
        url="https://example.com",
        source=source,
        published_at=datetime(2025, 6, 15, tzinfo=timezone.utc),
    )


@pytest.fixture
def fetcher():
    fetcher = MagicMock()
    fetcher.fetch_all = AsyncMock(return_value=[])
    fetcher.source_names = ["hackernews", "arxiv"]
    return fetcher


@pytest.fixture
def extractor(mock_claude, fetcher):
    return ConceptExtractor(mock_claude, fetcher, model="claude-fast", signal_limit=2)


RAW_CONCEPTS = {
    "concepts": [
        {
            "name": "Model Context Protocol",
            "description": "Open protocol for tool access",
            "whyHot": "Every IDE ships it",
            "useCases": ["tools", "data access", ""],
            "keywords": ["MCP", "tool calling"],
            "category": "Protocol",
            "hypeLevel": "PEAK",
        },
        {"name": "   "},
        "not a dict",
        {"name": "Test-time compute"},
    ]
}


# ===========================================================================
# Pure helpers
# ===========================================================================


class TestFormatSignals:
    def test_numbered_lines_with_source(self):
        text = format_signals([_signal("One"), _signal("Two", source="arxiv")])
        assert text.startswith("1. [hackernews] One\n   summary text")
        assert "2. [arxiv] Two" in text

    def test_respects_limit(self):
        text = format_signals([_signal(str(i)) for i in range(5)], limit=2)
        assert "3. [" not in text


class TestSanitizeConcept:
    def test_normalizes_fields(self):
        concept = sanitize_concept(RAW_CONCEPTS["concepts"][0], 0, 1700)
        assert concept.id == "concept_1700_0"
        assert concept.category == "protocol"
        assert concept.hype_level == "peak"
        assert concept.use_cases == ["tools", "data access"]
        assert concept.source_type == "dynamic"

    @pytest.mark.parametrize("raw", [{"name": ""}, {"name": "  "}, "text", None])
    def test_unusable_items_return_none(self, raw):
        assert sanitize_concept(raw, 0, 1) is None

    def test_missing_fields_get_defaults(self):
        concept = sanitize_concept({"name": "RLHF"}, 3, 1)
        assert concept.category == "technique"
        assert concept.keywords == []


class TestConceptFilters:
    def test_by_category(self, make_concept):
        a = make_concept("MCP", category="protocol")
        b = make_concept("RAG")
        assert filter_concepts_by_category([a, b], "protocol") == [a]

    def test_by_hype(self, make_concept):
        a = make_concept("A", hype_level="emerging")
        b = make_concept("B", hype_level="declining")
        assert filter_concepts_by_hype([a, b], ["emerging", "peak"]) == [a]

    def test_top_concepts_orders_by_hype_priority(self, make_concept):
        declining = make_concept("D", hype_level="declining")
        emerging = make_concept("E", hype_level="emerging")
        peak = make_concept("P", hype_level="peak")
        maturing = make_concept("M", hype_level="maturing")
        ordered = top_concepts([declining, emerging, peak, maturing], n=3)
        assert [c.name for c in ordered] == ["P", "E", "M"]


# ===========================================================================
# ConceptExtractor
# ===========================================================================


class TestExtract:
    @pytest.mark.asyncio
    async def test_returns_usable_concepts(self, extractor, mock_claude, call_cost):
        mock_claude.invoke_json.return_value = (RAW_CONCEPTS, call_cost)

        outcome = await extractor.extract([_signal("a"), _signal("b"), _signal("c")])

        assert [c.name for c in outcome.concepts] == ["Model Context Protocol", "Test-time compute"]
        assert outcome.raw_signal_count == 3
        assert outcome.cost is call_cost
        assert mock_claude.invoke_json.call_args.kwargs["model"] == "claude-fast"

    @pytest.mark.asyncio
    async def test_prompt_limited_to_signal_limit(self, extractor, mock_claude, call_cost):
        mock_claude.invoke_json.return_value = (RAW_CONCEPTS, call_cost)
        await extractor.extract([_signal("first"), _signal("second"), _signal("third")])
        prompt = mock_claude.invoke_json.call_args.kwargs["prompt"]
        assert "second" in prompt
        assert "third" not in prompt

    @pytest.mark.asyncio
    async def test_generation_error_wrapped(self, extractor, mock_claude):
        mock_claude.invoke_json.side_effect = EmptyResponseError("empty")
        with pytest.raises(ConceptExtractionError) as exc_info:
            await extractor.extract([_signal("a")])
        assert isinstance(exc_info.value.__cause__, EmptyResponseError)

    @pytest.mark.asyncio
    async def test_missing_concepts_list_raises(self, extractor, mock_claude, call_cost):
        mock_claude.invoke_json.return_value = ({"concepts": "none"}, call_cost)
        with pytest.raises(ConceptExtractionError, match="no 'concepts' list"):
            await extractor.extract([_signal("a")])

    @pytest.mark.asyncio
    async def test_no_usable_concept_raises(self, extractor, mock_claude, call_cost):
        mock_claude.invoke_json.return_value = ({"concepts": [{"name": ""}]}, call_cost)
        with pytest.raises(ConceptExtractionError, match="no usable concepts"):
            await extractor.extract([_signal("a")])


class TestFetchAndExtract:
    @pytest.mark.asyncio
    async def test_deduplicates_before_extracting(self, extractor, fetcher, mock_claude, call_cost):
        fetcher.fetch_all.return_value = [_signal("MCP is hot"), _signal("MCP is HOT!", source="arxiv")]
        mock_claude.invoke_json.return_value = (RAW_CONCEPTS, call_cost)

        outcome = await extractor.fetch_and_extract()

        assert outcome.raw_signal_count == 1

    @pytest.mark.asyncio
    async def test_no_signals_raises_without_calling_model(self, extractor, mock_claude):
        with pytest.raises(ConceptExtractionError, match="No signals"):
            await extractor.fetch_and_extract()
        mock_claude.invoke_json.assert_not_awaited()

    def test_source_names_from_fetcher(self, extractor):
        assert extractor.source_names == ["hackernews", "arxiv"]
