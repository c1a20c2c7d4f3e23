"""Tests for src.agents.company_profiler."""

import pytest

from src.agents.company_profiler import (
    CompanyProfiler,
    build_profile_prompt,
    sanitize_differentiators,
    sanitize_profile,
)
from src.config import FusionThresholds
from src.exceptions import CompanyProfileError, MalformedResponseError
from src.models import CompanyEnrichment, ContentSummary, IdeaRequest


@pytest.fixture
def request_full():
    return IdeaRequest(
        company_id="acme",
        company_name="Acme Vectors",
        website="https://acme.dev",
        enrichment=CompanyEnrichment(
            industry="Databases",
            technologies=["Rust", "Kubernetes"],
            keywords=["vector search"],
            employee_count=40,
        ),
        content_summary=ContentSummary(
            content_summary="Deep dives on ANN indexes",
            is_technical=True,
            has_code_examples=True,
            monthly_frequency=4,
        ),
    )


@pytest.fixture
def request_bare():
    return IdeaRequest(company_id="bare", company_name="Bare Co", website="https://bare.co")


RAW_PROFILE = {
    "companyName": "Acme Vectors",
    "oneLinerDescription": "Managed vector database",
    "companyType": "vector database",
    "techStack": ["Rust", "gRPC"],
    "uniqueDifferentiators": [
        {"claim": "Filtered ANN", "evidence": "Benchmarks", "category": "technical_approach",
         "uniquenessScore": 85},
        {"claim": "Cheap", "evidence": "Pricing page", "uniquenessScore": 40},
    ],
    "targetAudience": {"primary": "ML engineers", "jobTitles": ["MLE"]},
    "contentStyle": {"technicalDepth": "high", "topicsToAvoid": ["crypto"]},
}


# ===========================================================================
# Prompt
# ===========================================================================


class TestBuildProfilePrompt:
    def test_includes_enrichment_and_blog_signals(self, request_full):
        prompt = build_profile_prompt(request_full)
        assert "- Industry: Databases" in prompt
        assert "- Tech Stack: Rust, Kubernetes" in prompt
        assert "- Team Size: 40" in prompt
        assert "- Code examples: yes" in prompt
        assert "- Diagrams: no" in prompt
        assert "- Monthly frequency: 4" in prompt

    def test_missing_enrichment_reads_unknown(self, request_bare):
        prompt = build_profile_prompt(request_bare)
        assert "- Industry: Unknown" in prompt
        assert "- Tech Stack: Unknown" in prompt
        assert "- Content summary: none" in prompt
        assert '"companyName": "Bare Co"' in prompt


# ===========================================================================
# Sanitization
# ===========================================================================


class TestSanitizeDifferentiators:
    def test_filters_below_min_uniqueness(self):
        result = sanitize_differentiators(RAW_PROFILE["uniqueDifferentiators"])
        assert [d.claim for d in result] == ["Filtered ANN"]

    def test_missing_fields_get_defaults(self):
        [d] = sanitize_differentiators([{}])
        assert d.claim == "Company-specific capability"
        assert d.category == "product_feature"
        assert d.uniqueness_score == 65.0

    def test_caps_number_considered(self):
        raw = [{"claim": f"c{i}", "uniquenessScore": 90} for i in range(8)]
        assert len(sanitize_differentiators(raw, FusionThresholds(max_differentiators=3))) == 3

    def test_non_list_yields_empty(self):
        assert sanitize_differentiators("nope") == []


class TestSanitizeProfile:
    def test_full_response(self, request_full):
        profile = sanitize_profile(RAW_PROFILE, request_full)
        assert profile.company_type == "vector database"
        assert profile.tech_stack == ["Rust", "gRPC"]
        assert profile.target_audience.primary == "ML engineers"
        assert profile.target_audience.secondary == "Engineering managers"
        assert profile.content_style.technical_depth == "high"
        assert profile.content_style.topics_to_avoid == ["crypto"]

    def test_empty_response_fully_defaulted(self, request_bare):
        profile = sanitize_profile({}, request_bare)
        assert profile.company_name == "Bare Co"
        assert profile.one_liner == "Bare Co provides B2B solutions."
        assert profile.company_type == "Unknown"
        assert profile.tech_stack == []
        assert profile.differentiators == []
        assert profile.content_style.format_preferences

    def test_tech_stack_falls_back_to_enrichment(self, request_full):
        profile = sanitize_profile({"techStack": []}, request_full)
        assert profile.tech_stack == ["Rust", "Kubernetes"]

    def test_non_dict_response(self, request_bare):
        assert sanitize_profile(["list"], request_bare).company_name == "Bare Co"


# ===========================================================================
# CompanyProfiler
# ===========================================================================


class TestCompanyProfiler:
    @pytest.mark.asyncio
    async def test_profile_returns_sanitized_profile_and_cost(
        self, mock_claude, call_cost, request_full
    ):
        mock_claude.invoke_json.return_value = (RAW_PROFILE, call_cost)

        profile, cost = await CompanyProfiler(mock_claude, model="claude-big").profile(request_full)

        assert profile.company_name == "Acme Vectors"
        assert len(profile.differentiators) == 1
        assert cost is call_cost
        assert mock_claude.invoke_json.call_args.kwargs["model"] == "claude-big"

    @pytest.mark.asyncio
    async def test_generation_error_wrapped(self, mock_claude, request_full):
        mock_claude.invoke_json.side_effect = MalformedResponseError("not json", raw_text="oops")
        with pytest.raises(CompanyProfileError, match="Company profiling failed"):
            await CompanyProfiler(mock_claude).profile(request_full)
