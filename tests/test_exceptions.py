"""Tests for src.exceptions -- custom exception hierarchy.

Validates the hierarchy (which errors are pipeline errors, which are
generative-service errors), attribute storage and message formatting.
"""

import pytest

from src.exceptions import (
    CompanyProfileError,
    ConceptCacheError,
    ConceptExtractionError,
    ConceptMatchError,
    ConfigurationError,
    DatabaseError,
    EmptyResponseError,
    GapAnalysisError,
    GenerationError,
    IdeaGenerationError,
    IdeaValidationError,
    MalformedResponseError,
    NodeTimeoutError,
    NotificationError,
    PipelineBaseError,
    PipelineStageError,
    RetryExhaustedError,
    SignalSourceError,
    ValidationError,
)


# =========================================================================
# Hierarchy
# =========================================================================


class TestExceptionHierarchy:
    """Every stage error is a PipelineBaseError; infrastructure errors are not."""

    @pytest.mark.parametrize(
        "exc_cls",
        [
            GenerationError,
            SignalSourceError,
            ConceptExtractionError,
            ConceptCacheError,
            CompanyProfileError,
            ConceptMatchError,
            GapAnalysisError,
            IdeaGenerationError,
            IdeaValidationError,
            NotificationError,
        ],
    )
    def test_stage_errors_are_pipeline_errors(self, exc_cls):
        assert issubclass(exc_cls, PipelineBaseError)

    @pytest.mark.parametrize("exc_cls", [EmptyResponseError, MalformedResponseError])
    def test_response_errors_are_generation_errors(self, exc_cls):
        assert issubclass(exc_cls, GenerationError)

    @pytest.mark.parametrize(
        "exc_cls",
        [DatabaseError, ConfigurationError, RetryExhaustedError, NodeTimeoutError],
    )
    def test_infrastructure_errors_are_not_pipeline_errors(self, exc_cls):
        assert not issubclass(exc_cls, PipelineBaseError)

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)

    def test_stage_error_is_not_generation_error(self):
        """Stages wrap generation errors rather than subclassing them."""
        assert not issubclass(ConceptMatchError, GenerationError)


# =========================================================================
# Attribute-carrying exceptions
# =========================================================================


class TestRetryExhaustedError:
    def test_attributes_and_message(self):
        cause = ConnectionError("reset by peer")
        err = RetryExhaustedError("claude.messages.create", 3, cause)

        assert err.operation == "claude.messages.create"
        assert err.attempts == 3
        assert err.last_error is cause
        assert str(err) == (
            "claude.messages.create failed after 3 attempts. Last error: reset by peer"
        )


class TestNodeTimeoutError:
    def test_attributes_and_message(self):
        err = NodeTimeoutError("generate_ideas", 120)

        assert err.node_name == "generate_ideas"
        assert err.timeout == 120
        assert str(err) == "Node 'generate_ideas' timed out after 120 seconds"


class TestMalformedResponseError:
    def test_raw_text_truncated_to_500_chars(self):
        err = MalformedResponseError("bad json", raw_text="x" * 2000)
        assert len(err.raw_text) == 500
        assert str(err) == "bad json"

    def test_raw_text_defaults_empty(self):
        assert MalformedResponseError("bad json").raw_text == ""


class TestPipelineStageError:
    def test_attributes_and_message(self):
        err = PipelineStageError("match_concepts", "ConceptMatchError: timeout", run_id="run-1")

        assert err.stage == "match_concepts"
        assert err.cause_message == "ConceptMatchError: timeout"
        assert err.run_id == "run-1"
        assert str(err) == "Pipeline stage 'match_concepts' failed: ConceptMatchError: timeout"

    def test_run_id_optional(self):
        assert PipelineStageError("analyze_gaps", "boom").run_id is None

    def test_caught_as_pipeline_base_error(self):
        with pytest.raises(PipelineBaseError):
            raise PipelineStageError("validate_ideas", "boom")


# =========================================================================
# Wrapping
# =========================================================================


def test_stage_error_chains_generation_error():
    """Stages raise their own error ``from`` the generative failure."""
    with pytest.raises(CompanyProfileError) as exc_info:
        try:
            raise EmptyResponseError("no text")
        except GenerationError as exc:
            raise CompanyProfileError(f"Company profiling failed: {exc}") from exc

    assert isinstance(exc_info.value.__cause__, EmptyResponseError)


def test_all_exports_are_importable():
    """Every name in __all__ must be importable from src.exceptions."""
    import src.exceptions as mod

    for name in mod.__all__:
        assert hasattr(mod, name), f"{name} listed in __all__ but not defined"
