"""Tests for src.agents.idea_validator -- composite scoring and partial responses."""

import itertools

import pytest

from src.agents.idea_validator import (
    DEFAULT_IMPROVEMENT,
    DEFAULT_REJECTION_REASON,
    VALIDATION_CRITERIA,
    IdeaValidator,
    build_validation_prompt,
    build_validation_result,
    calculate_overall_score,
    find_evaluation,
    is_idea_valid,
    scores_from_evaluation,
    summarize_results,
)
from src.exceptions import IdeaValidationError, MalformedResponseError
from src.models import ValidationResult, ValidationScores


def _scores(cr=80, tf=80, pti=80, ar=80, da=80):
    scores = ValidationScores(cr, tf, pti, ar, da)
    scores.overall_score = calculate_overall_score(scores)
    return scores


def _evaluation(index, verdict="ACCEPT", score=85, **overrides):
    data = {
        "ideaIndex": index,
        "companyRelevance": score,
        "trendFreshness": score,
        "productTrendIntegration": score,
        "audienceRelevance": score,
        "developerActionability": score,
        "verdict": verdict,
    }
    data.update(overrides)
    return data


# ===========================================================================
# Composite score
# ===========================================================================


class TestCompositeScore:
    def test_weights_sum_to_one(self):
        assert sum(criterion["weight"] for criterion in VALIDATION_CRITERIA.values()) == pytest.approx(1.0)

    def test_weighted_sum(self):
        scores = ValidationScores(90, 80, 70, 60, 40)
        # 27 + 20 + 14 + 9 + 4
        assert calculate_overall_score(scores) == 74

    def test_uniform_scores(self):
        assert calculate_overall_score(ValidationScores(80, 80, 80, 80, 80)) == 80

    @pytest.mark.parametrize("dimension", list(VALIDATION_CRITERIA))
    def test_monotonic_in_every_dimension(self, dimension):
        base = dict(company_relevance=60, trend_freshness=60, product_trend_integration=60,
                    audience_relevance=60, developer_actionability=60)
        previous = None
        for value in range(0, 101, 10):
            score = calculate_overall_score(ValidationScores(**{**base, dimension: value}))
            if previous is not None:
                assert score >= previous
            previous = score


# ===========================================================================
# Validity rule
# ===========================================================================


class TestIsIdeaValid:
    def test_accept_with_all_floors_passing(self):
        assert is_idea_valid(_scores(), "ACCEPT") is True

    @pytest.mark.parametrize("verdict", ["accept", " Accept ", "ACCEPT"])
    def test_verdict_case_insensitive(self, verdict):
        assert is_idea_valid(_scores(), verdict) is True

    @pytest.mark.parametrize("verdict", ["REJECT", "", None, 1])
    def test_non_accept_verdict_invalid(self, verdict):
        assert is_idea_valid(_scores(), verdict) is False

    def test_composite_floor(self):
        scores = _scores(70, 65, 65, 60, 60)
        assert scores.overall_score < 70
        assert is_idea_valid(scores, "ACCEPT") is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cr": 69, "tf": 100, "pti": 100, "ar": 100, "da": 100},
            {"cr": 100, "tf": 64, "pti": 100, "ar": 100, "da": 100},
            {"cr": 100, "tf": 100, "pti": 64, "ar": 100, "da": 100},
            {"cr": 100, "tf": 100, "pti": 100, "ar": 100, "da": 59},
        ],
    )
    def test_single_floor_failure_invalidates_high_composite(self, kwargs):
        scores = _scores(**kwargs)
        assert scores.overall_score >= 70
        assert is_idea_valid(scores, "ACCEPT") is False

    def test_audience_has_no_individual_floor(self):
        assert is_idea_valid(_scores(ar=0, cr=90, tf=90, pti=90, da=90), "ACCEPT") is True

    def test_valid_implies_every_condition(self):
        for cr, tf, pti, da in itertools.product([59, 75], repeat=4):
            scores = _scores(cr=cr, tf=tf, pti=pti, da=da)
            if is_idea_valid(scores, "ACCEPT"):
                assert scores.overall_score >= 70
                assert min(cr, tf, pti) >= 65 and da >= 60


# ===========================================================================
# Evaluation parsing
# ===========================================================================


class TestEvaluationParsing:
    def test_missing_dimensions_use_conservative_defaults(self):
        scores = scores_from_evaluation({})
        assert (scores.company_relevance, scores.trend_freshness, scores.product_trend_integration) == (45, 45, 45)
        assert (scores.audience_relevance, scores.developer_actionability) == (50, 50)
        assert scores.overall_score == 46

    def test_find_evaluation_by_one_based_index(self):
        evaluations = ["junk", _evaluation(2, score=70), _evaluation(1, score=90), _evaluation(2, score=10)]
        assert find_evaluation(evaluations, 2)["companyRelevance"] == 70
        assert find_evaluation(evaluations, 3) == {}

    def test_string_index_matches(self):
        assert find_evaluation([{"ideaIndex": "3"}], 3) == {"ideaIndex": "3"}

    def test_rejected_result_gets_defaults(self, make_idea):
        result = build_validation_result(make_idea(), {})
        assert result.is_valid is False
        assert result.rejection_reason == DEFAULT_REJECTION_REASON
        assert result.improvement_suggestion == DEFAULT_IMPROVEMENT

    def test_accepted_result_has_no_reason(self, make_idea):
        result = build_validation_result(make_idea(), _evaluation(1, rejectionReason="ignored"))
        assert result.is_valid is True
        assert result.rejection_reason is None


def test_summarize_results_sorts_and_counts(make_idea):
    results = [
        ValidationResult(make_idea("low"), False, _scores(50, 50, 50, 50, 50), "weak"),
        ValidationResult(make_idea("high"), True, _scores(90, 90, 90, 90, 90)),
        ValidationResult(make_idea("mid"), False, _scores(60, 60, 60, 60, 60), None),
    ]
    outcome = summarize_results(results)
    assert [r.idea.title for r in outcome.results] == ["high", "mid", "low"]
    assert outcome.valid_count == 1
    assert outcome.rejected_count == 2
    assert outcome.top_rejection_reasons == [DEFAULT_REJECTION_REASON, "weak"]


def test_prompt_numbers_ideas(sample_profile, make_idea):
    prompt = build_validation_prompt(sample_profile, [make_idea("First"), make_idea("Second")])
    assert "IDEA 1\n- Title: First" in prompt
    assert "IDEA 2\n- Title: Second" in prompt
    assert "- companyRelevance: specific to this company" in prompt


# ===========================================================================
# IdeaValidator
# ===========================================================================


class TestIdeaValidator:
    @pytest.mark.asyncio
    async def test_omitted_idea_defaults_and_fails(self, mock_claude, call_cost, sample_profile, make_idea):
        ideas = [make_idea(f"Idea {i}") for i in range(1, 6)]
        evaluations = [_evaluation(i) for i in (1, 2, 4, 5)]
        mock_claude.invoke_json.return_value = ({"evaluations": evaluations}, call_cost)

        outcome = await IdeaValidator(mock_claude).validate(sample_profile, ideas)

        assert outcome.valid_count == 4
        assert outcome.rejected_count == 1
        [third] = [r for r in outcome.results if r.idea.title == "Idea 3"]
        assert third.is_valid is False
        assert third.scores.company_relevance == 45
        assert third.rejection_reason == DEFAULT_REJECTION_REASON
        assert outcome.results[-1] is third
        assert outcome.cost is call_cost

    @pytest.mark.asyncio
    async def test_every_idea_gets_exactly_one_result(self, mock_claude, call_cost, sample_profile, make_idea):
        ideas = [make_idea(f"Idea {i}") for i in range(3)]
        mock_claude.invoke_json.return_value = ({"evaluations": "oops"}, call_cost)

        outcome = await IdeaValidator(mock_claude).validate(sample_profile, ideas)

        assert sorted(r.idea.title for r in outcome.results) == ["Idea 0", "Idea 1", "Idea 2"]
        assert outcome.valid_count == 0

    @pytest.mark.asyncio
    async def test_empty_batch_skips_call(self, mock_claude, sample_profile):
        outcome = await IdeaValidator(mock_claude).validate(sample_profile, [])
        assert outcome.results == []
        mock_claude.invoke_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generation_error_wrapped(self, mock_claude, sample_profile, make_idea):
        mock_claude.invoke_json.side_effect = MalformedResponseError("bad")
        with pytest.raises(IdeaValidationError, match="Idea validation failed"):
            await IdeaValidator(mock_claude).validate(sample_profile, [make_idea()])

    @pytest.mark.asyncio
    async def test_uses_configured_model(self, mock_claude, call_cost, sample_profile, make_idea):
        mock_claude.invoke_json.return_value = ({"evaluations": [_evaluation(1)]}, call_cost)
        await IdeaValidator(mock_claude, model="claude-fast").validate(sample_profile, [make_idea()])
        assert mock_claude.invoke_json.call_args.kwargs["model"] == "claude-fast"
