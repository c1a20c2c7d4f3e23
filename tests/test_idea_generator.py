"""Tests for src.agents.idea_generator."""

import pytest

from src.agents import idea_generator
from src.agents.attempt_loop import count_concept_tutorials
from src.agents.idea_generator import (
    BUZZWORD_BLACKLIST,
    IdeaGenerator,
    build_generation_prompt,
    find_buzzwords,
    sanitize_idea,
)
from src.exceptions import EmptyResponseError, IdeaGenerationError
from src.models import ContentGap, MatchedConcept


def _raw_idea(title, probability=0.8, **extra):
    data = {
        "title": title,
        "probability": probability,
        "isConceptTutorial": True,
        "aiConcept": "MCP",
        "sourceConceptType": "dynamic",
        "trendFreshnessScore": 85,
        "conceptFitScore": 78,
    }
    data.update(extra)
    return data


@pytest.fixture
def matched(make_concept):
    return [MatchedConcept(make_concept("MCP"), 82, "fits", "MCP server for Acme", "How to ...")]


@pytest.fixture
def gaps():
    return [ContentGap(f"Gap {i}", "trending", "why", f"angle {i}", 80) for i in range(8)]


# ===========================================================================
# Sanitization
# ===========================================================================


class TestSanitizeIdea:
    def test_empty_item_fully_defaulted(self):
        idea = sanitize_idea({})
        assert idea.title == "Practical company-specific AI implementation guide"
        assert idea.probability == 0.7
        assert idea.trend_freshness_score == 70.0
        assert idea.what_reader_learns == [
            "Implementation steps",
            "Architecture decisions",
            "Operational guardrails",
            "Measurable outcomes",
        ]
        assert idea.key_stack_tools == ["Company product", "LLMs"]
        assert idea.source_concept_type == "curated"
        assert idea.ai_concept is None
        assert idea.concept_fit_score is None
        assert idea.is_concept_tutorial is False

    def test_full_item(self):
        idea = sanitize_idea(_raw_idea("Ship an MCP server", whatReaderLearns=list("abcdef")))
        assert idea.title == "Ship an MCP server"
        assert idea.what_reader_learns == ["a", "b", "c", "d"]
        assert idea.source_concept_type == "dynamic"
        assert idea.concept_fit_score == 78.0
        assert idea.ai_concept == "MCP"

    def test_non_numeric_fit_score_is_none(self):
        assert sanitize_idea({"conceptFitScore": "high"}).concept_fit_score is None
        assert sanitize_idea({"conceptFitScore": True}).concept_fit_score is None

    def test_blank_optional_text_is_none(self):
        assert sanitize_idea({"differentiatorUsed": "   "}).differentiator_used is None


class TestBuzzwords:
    def test_detects_blacklisted_phrases(self, make_idea):
        idea = make_idea(title="A Revolutionary, seamless MCP rollout")
        assert find_buzzwords(idea) == ["revolutionary", "seamless"]

    def test_clean_idea(self, make_idea):
        assert find_buzzwords(make_idea()) == []

    def test_bare_paradigm_not_blacklisted(self):
        assert "paradigm" not in BUZZWORD_BLACKLIST
        assert "paradigm shift" in BUZZWORD_BLACKLIST


def test_tutorial_count_reported_from_attempt_loop(make_idea):
    ideas = [
        make_idea(),
        make_idea(is_concept_tutorial=False, ai_concept="MCP"),
        make_idea(is_concept_tutorial=False, ai_concept=None),
    ]
    assert idea_generator.count_concept_tutorials is count_concept_tutorials
    assert count_concept_tutorials(ideas) == 2


# ===========================================================================
# Prompt
# ===========================================================================


class TestGenerationPrompt:
    def test_first_attempt(self, sample_profile, gaps, matched):
        prompt = build_generation_prompt(sample_profile, gaps, matched)
        assert prompt.startswith("Generate 5 HIGH-QUALITY blog ideas for Acme Vectors.")
        assert "At least 3 ideas MUST be concept tutorials" in prompt
        assert "1. MCP [dynamic] (fit: 82, freshness: 80)" in prompt
        assert "6. Gap 5" in prompt
        assert "7. Gap 6" not in prompt
        assert "regeneration attempt" not in prompt

    def test_regeneration_includes_feedback(self, sample_profile, gaps, matched):
        prompt = build_generation_prompt(
            sample_profile,
            gaps,
            matched,
            specific_requirements="Focus on Rust",
            attempt=2,
            rejection_summary="Too generic; no product tie-in",
        )
        assert "- Specific requirements from user: Focus on Rust" in prompt
        assert "- Fix these issues from previous attempt: Too generic; no product tie-in" in prompt
        assert "This is a regeneration attempt" in prompt


# ===========================================================================
# IdeaGenerator
# ===========================================================================


class TestIdeaGenerator:
    @pytest.mark.asyncio
    async def test_drops_low_probability_and_caps(self, mock_claude, call_cost, sample_profile, gaps, matched):
        raw = [_raw_idea(f"Idea {i}") for i in range(6)]
        raw.insert(1, _raw_idea("Unlikely", probability=0.39))
        raw.insert(2, _raw_idea("Borderline", probability=0.4))
        mock_claude.invoke_json.return_value = ({"ideas": raw}, call_cost)

        ideas, cost = await IdeaGenerator(mock_claude).generate(sample_profile, gaps, matched)

        assert [i.title for i in ideas] == ["Idea 0", "Borderline", "Idea 1", "Idea 2", "Idea 3"]
        assert cost is call_cost

    @pytest.mark.asyncio
    async def test_passes_attempt_and_feedback_to_prompt(
        self, mock_claude, call_cost, sample_profile, gaps, matched
    ):
        mock_claude.invoke_json.return_value = ({"ideas": []}, call_cost)

        ideas, _ = await IdeaGenerator(mock_claude).generate(
            sample_profile, gaps, matched, attempt=2, rejection_summary="Weak trend tie"
        )

        assert ideas == []
        prompt = mock_claude.invoke_json.call_args.kwargs["prompt"]
        assert "Weak trend tie" in prompt

    @pytest.mark.asyncio
    async def test_generation_error_wrapped(self, mock_claude, sample_profile, gaps, matched):
        mock_claude.invoke_json.side_effect = EmptyResponseError("empty")
        with pytest.raises(IdeaGenerationError) as exc_info:
            await IdeaGenerator(mock_claude).generate(sample_profile, gaps, matched)
        assert isinstance(exc_info.value.__cause__, EmptyResponseError)
