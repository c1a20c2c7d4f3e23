"""
Tests for src.models -- the centralized shared data types module.

Covers:
    - TrendConcept / CachedConceptSet document round trips and tolerance
    - CostInfo addition and StageCosts totals
    - IdeaRequest.from_dict (CLI input)
    - GeneratedIdea immutability and concept-tutorial counting
    - PipelineResult.to_dict shape
    - PipelineState TypedDict usage
"""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from src.models import (
    CONCEPT_CATEGORIES,
    HYPE_LEVELS,
    CachedConceptSet,
    CompanyEnrichment,
    ContentSummary,
    CostInfo,
    IdeaRequest,
    MatchedConcept,
    PipelineResult,
    PipelineState,
    StageCosts,
    TrendConcept,
    ValidationResult,
    ValidationScores,
)


# ===========================================================================
# Literal vocabularies
# ===========================================================================


def test_concept_vocabularies():
    assert CONCEPT_CATEGORIES == ["paradigm", "technique", "protocol", "architecture", "tool"]
    assert HYPE_LEVELS == ["emerging", "peak", "maturing", "declining"]


# ===========================================================================
# TrendConcept / CachedConceptSet
# ===========================================================================


class TestTrendConcept:
    def test_to_dict_serializes_timestamp(self, make_concept, sample_utc_now):
        concept = make_concept(last_updated=sample_utc_now)
        data = concept.to_dict()
        assert data["last_updated"] == "2025-06-15T12:00:00+00:00"
        assert data["name"] == "Agentic RAG"

    def test_from_dict_round_trip(self, make_concept, sample_utc_now):
        concept = make_concept("MCP", source_type="curated", last_updated=sample_utc_now)
        assert TrendConcept.from_dict(concept.to_dict()) == concept

    def test_from_dict_defaults_missing_fields(self):
        concept = TrendConcept.from_dict({"name": "Test-time compute"})
        assert concept.category == "technique"
        assert concept.hype_level == "emerging"
        assert concept.source_type == "dynamic"
        assert concept.freshness_score == 60
        assert concept.use_cases == []
        assert concept.last_updated.tzinfo is not None


class TestCachedConceptSet:
    def test_document_round_trip(self, make_concept, sample_utc_now):
        entry = CachedConceptSet(
            concepts=[make_concept(last_updated=sample_utc_now)],
            extracted_at=sample_utc_now,
            expires_at=sample_utc_now + timedelta(hours=24),
            raw_signal_count=37,
            sources=["hackernews", "arxiv"],
        )
        restored = CachedConceptSet.from_document(entry.to_document())
        assert restored == entry

    def test_missing_extracted_at_raises(self):
        with pytest.raises(ValueError, match="extracted_at"):
            CachedConceptSet.from_document({"concepts": []})

    def test_missing_expires_at_falls_back_to_extracted_at(self):
        entry = CachedConceptSet.from_document({"extracted_at": "2025-06-15T12:00:00Z"})
        assert entry.expires_at == entry.extracted_at
        assert entry.concepts == []
        assert entry.raw_signal_count == 0


# ===========================================================================
# Cost accounting
# ===========================================================================


class TestCosts:
    def test_cost_addition(self):
        a = CostInfo(input_tokens=100, output_tokens=50, total_cost=0.01, model="m1")
        b = CostInfo(input_tokens=10, output_tokens=5, total_cost=0.002, model="m2")
        total = a + b
        assert total.input_tokens == 110
        assert total.total_tokens == 165
        assert total.total_cost == pytest.approx(0.012)
        assert total.model == "m1"

    def test_empty_cost_keeps_other_model(self):
        assert (CostInfo() + CostInfo(model="haiku")).model == "haiku"

    def test_stage_costs_total(self):
        costs = StageCosts(
            stage0_trend_pool=CostInfo(total_cost=0.001),
            stage3_generation=CostInfo(total_cost=0.02),
            stage4_validation=CostInfo(total_cost=0.004),
        )
        assert costs.total.total_cost == pytest.approx(0.025)
        assert set(costs.to_dict()) == {
            "stage0_trend_pool",
            "stage1_profile",
            "stage1_5_matching",
            "stage2_gaps",
            "stage3_generation",
            "stage4_validation",
            "total",
        }


# ===========================================================================
# Caller input
# ===========================================================================


class TestIdeaRequest:
    def test_from_dict_full(self):
        request = IdeaRequest.from_dict(
            {
                "company_id": "acme",
                "company_name": "Acme Vectors",
                "website": "https://acme.dev",
                "enrichment": {"industry": "Databases", "technologies": ["Rust"]},
                "content_summary": {"content_summary": "Benchmarks", "is_technical": True},
                "specific_requirements": "Focus on RAG",
            }
        )
        assert request.enrichment == CompanyEnrichment(industry="Databases", technologies=["Rust"])
        assert request.content_summary == ContentSummary(content_summary="Benchmarks", is_technical=True)
        assert request.specific_requirements == "Focus on RAG"

    def test_company_id_defaults_to_name(self):
        request = IdeaRequest.from_dict({"company_name": "Acme"})
        assert request.company_id == "Acme"
        assert request.website == ""
        assert request.enrichment is None

    def test_company_name_required(self):
        with pytest.raises(KeyError):
            IdeaRequest.from_dict({"website": "https://acme.dev"})


# ===========================================================================
# Ideas
# ===========================================================================


class TestGeneratedIdea:
    def test_is_frozen(self, make_idea):
        idea = make_idea()
        with pytest.raises(dataclasses.FrozenInstanceError):
            idea.title = "changed"

    @pytest.mark.parametrize(
        "flag,concept,expected",
        [(True, None, True), (False, "MCP", True), (False, None, False), (False, "", False)],
    )
    def test_counts_as_concept_tutorial(self, make_idea, flag, concept, expected):
        idea = make_idea(is_concept_tutorial=flag, ai_concept=concept)
        assert idea.counts_as_concept_tutorial is expected


# ===========================================================================
# PipelineResult / PipelineState
# ===========================================================================


def test_pipeline_result_to_dict(make_idea, make_concept, sample_profile):
    idea = make_idea()
    concept = make_concept()
    result = PipelineResult(
        run_id="run-1",
        success=True,
        ideas=[idea],
        validation_results=[
            ValidationResult(
                idea=idea,
                is_valid=True,
                scores=ValidationScores(80, 75, 70, 70, 65, overall_score=74),
            )
        ],
        company_profile=sample_profile,
        content_gaps=[],
        matched_concepts=[MatchedConcept(concept, 82, "fits", "use it", "tutorial")],
        trend_concepts_used=[concept],
        debug={"degradedMode": False},
        cost_info=StageCosts(),
        regeneration_attempts=1,
        rejected_count=0,
        degraded_mode=False,
        generated_at=datetime(2025, 6, 15, tzinfo=timezone.utc),
    )

    data = result.to_dict()

    assert data["ideas"][0]["title"] == idea.title
    assert data["validation_results"][0]["scores"]["overall_score"] == 74
    assert data["matched_concepts"][0]["concept"]["name"] == "Agentic RAG"
    assert data["company_profile"]["company_name"] == "Acme Vectors"
    assert data["cost_info"]["total"]["total_cost"] == 0.0
    assert data["generated_at"] == "2025-06-15T00:00:00+00:00"
    assert data["regeneration_attempts"] == 1


def test_pipeline_state_is_partial_dict():
    state: PipelineState = {"run_id": "run-1", "stage": "initialized"}
    assert state["stage"] == "initialized"
    assert "trend_pool" not in state
