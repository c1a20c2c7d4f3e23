"""Shared fixtures for the trend-fusion pipeline test suite."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models import (
    CompanyProfile,
    CostInfo,
    Differentiator,
    GeneratedIdea,
    TrendConcept,
)


# ---------------------------------------------------------------------------
# Ensure we don't hit real APIs during tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _block_env_keys(monkeypatch):
    """Clear all API keys and threshold overrides so tests never hit real services."""
    keys = [
        "SUPABASE_URL",
        "SUPABASE_SERVICE_KEY",
        "ANTHROPIC_API_KEY",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
        "LLM_MODEL",
        "LOG_LEVEL",
        "FUSION_STRICT_FIT_THRESHOLD",
        "FUSION_CONCEPT_MATCH_MIN",
        "FUSION_POOL_TOP_K",
        "FUSION_GAP_PRIORITY_FLOOR",
        "FUSION_IDEA_PROBABILITY_FLOOR",
        "FUSION_OVERALL_FLOOR",
        "FUSION_MAX_ATTEMPTS",
        "HN_MIN_POINTS",
        "HN_QUERY",
        "ARXIV_MAX_RESULTS",
        "RSS_ITEMS_PER_FEED",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Common datetime fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def sample_utc_now():
    """A fixed UTC datetime for deterministic tests."""
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Generative client
# ---------------------------------------------------------------------------
@pytest.fixture
def call_cost():
    """Cost reported by one mocked generative call."""
    return CostInfo(
        input_tokens=1000,
        output_tokens=500,
        input_cost=0.003,
        output_cost=0.0075,
        total_cost=0.0105,
        model="claude-test",
    )


@pytest.fixture
def mock_claude(call_cost):
    """A ClaudeClient stand-in; set ``invoke_json.return_value`` or ``side_effect``."""
    claude = MagicMock()
    claude.invoke_json = AsyncMock(return_value=({}, call_cost))
    return claude


# ---------------------------------------------------------------------------
# Domain object factories
# ---------------------------------------------------------------------------
@pytest.fixture
def make_concept():
    """Factory for ``TrendConcept`` instances with sensible defaults."""

    def _make(name="Agentic RAG", **overrides):
        data = dict(
            id=f"c_{name.lower().replace(' ', '_')}",
            name=name,
            description=f"{name} description",
            why_hot=f"{name} is everywhere right now",
            use_cases=["search", "support"],
            keywords=[name.lower()],
            category="technique",
            hype_level="peak",
            source_type="dynamic",
            freshness_score=80,
            confidence_score=72,
            evidence_count=1,
        )
        data.update(overrides)
        return TrendConcept(**data)

    return _make


@pytest.fixture
def sample_profile():
    """A realistic company profile for a vector database vendor."""
    return CompanyProfile(
        company_name="Acme Vectors",
        one_liner="Managed vector database for production retrieval",
        company_type="vector database",
        tech_stack=["Rust", "Kubernetes", "gRPC"],
        differentiators=[
            Differentiator(
                claim="Sub-10ms filtered search at billion scale",
                evidence="Public benchmark results",
                category="technical_approach",
                uniqueness_score=85,
            ),
        ],
    )


@pytest.fixture
def make_idea():
    """Factory for ``GeneratedIdea`` instances."""

    def _make(title="Build agentic RAG on Acme Vectors", **overrides):
        data = dict(
            title=title,
            why_only_they_can_write_this="They run the index",
            specific_evidence="Benchmarks",
            target_gap="tech_stack",
            audience_fit="Backend engineers",
            what_reader_learns=["a", "b", "c", "d"],
            key_stack_tools=["Acme", "LLMs"],
            angle_to_avoid_duplication="Production numbers",
            probability=0.8,
            is_concept_tutorial=True,
            trend_evidence="Everyone ships agents",
            product_trend_integration="Acme filters as tool calls",
            trend_freshness_score=80.0,
            source_concept_type="dynamic",
            ai_concept="Agentic RAG",
        )
        data.update(overrides)
        return GeneratedIdea(**data)

    return _make


# ---------------------------------------------------------------------------
# Mock Supabase client
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_supabase_client():
    """A mock Supabase async client."""
    client = AsyncMock()
    # table().select().execute() chain
    table_mock = MagicMock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.upsert.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.order.return_value = table_mock
    table_mock.limit.return_value = table_mock

    async def mock_execute():
        return MagicMock(data=[], count=0)

    table_mock.execute = mock_execute
    client.table = MagicMock(return_value=table_mock)
    return client
