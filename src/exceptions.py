"""
Custom exception classes for the trend-fusion idea pipeline.

Every stage raises a dedicated subclass so the orchestrator can tell a
pipeline-critical failure (profile, matching, gaps, generation, validation)
apart from the recoverable ones (a single signal source, dynamic concept
extraction with a cached or curated fallback, an outbound sink).

Hierarchy:
    Exception
    +-- PipelineBaseError (base for all pipeline-specific errors)
    |   +-- GenerationError
    |   |   +-- EmptyResponseError
    |   |   +-- MalformedResponseError
    |   +-- SignalSourceError
    |   +-- ConceptExtractionError
    |   +-- ConceptCacheError
    |   +-- CompanyProfileError
    |   +-- ConceptMatchError
    |   +-- GapAnalysisError
    |   +-- IdeaGenerationError
    |   +-- IdeaValidationError
    |   +-- NotificationError
    |   +-- PipelineStageError
    +-- ValidationError (ValueError)
    +-- DatabaseError
    +-- ConfigurationError
    +-- RetryExhaustedError
    +-- NodeTimeoutError
"""

from typing import Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class PipelineBaseError(Exception):
    """Base exception for all pipeline-related errors."""

    pass


# =============================================================================
# CORE EXCEPTIONS
# =============================================================================


class ValidationError(ValueError):
    """Raised when input validation fails."""

    pass


class DatabaseError(Exception):
    """Raised when database operations fail."""

    pass


class ConfigurationError(Exception):
    """Raised when system configuration is invalid."""

    pass


class RetryExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        operation: Name of the operation that was retried.
        attempts: Total number of attempts made.
        last_error: The last exception raised before giving up.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


class NodeTimeoutError(Exception):
    """Raised when a pipeline node exceeds its timeout.

    Attributes:
        node_name: Name of the node that timed out.
        timeout: Timeout duration in seconds.
    """

    def __init__(self, node_name: str, timeout: int):
        self.node_name = node_name
        self.timeout = timeout
        super().__init__(f"Node '{node_name}' timed out after {timeout} seconds")


# =============================================================================
# GENERATIVE SERVICE EXCEPTIONS
# =============================================================================


class GenerationError(PipelineBaseError):
    """Raised when a generative-service call cannot produce usable output."""

    pass


class EmptyResponseError(GenerationError):
    """Raised when the generative service returns no text content."""

    pass


class MalformedResponseError(GenerationError):
    """Raised when a structured response cannot be parsed as a JSON object.

    Attributes:
        raw_text: The (truncated) text that failed to parse.
    """

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text[:500]
        super().__init__(message)


# =============================================================================
# STAGE EXCEPTIONS
# =============================================================================


class SignalSourceError(PipelineBaseError):
    """Raised when a single news source cannot be fetched or parsed."""

    pass


class ConceptExtractionError(PipelineBaseError):
    """Raised when concepts cannot be extracted from the fetched signals."""

    pass


class ConceptCacheError(PipelineBaseError):
    """Raised when no concept set is available, fresh or stale."""

    pass


class CompanyProfileError(PipelineBaseError):
    """Raised when the company profile stage fails."""

    pass


class ConceptMatchError(PipelineBaseError):
    """Raised when the trend-to-company matching stage fails."""

    pass


class GapAnalysisError(PipelineBaseError):
    """Raised when the content-gap stage fails."""

    pass


class IdeaGenerationError(PipelineBaseError):
    """Raised when an idea generation attempt fails."""

    pass


class IdeaValidationError(PipelineBaseError):
    """Raised when an idea validation attempt fails."""

    pass


class NotificationError(PipelineBaseError):
    """Raised when a chat notification cannot be delivered."""

    pass


class PipelineStageError(PipelineBaseError):
    """Raised by the orchestrator when a pipeline-critical stage failed.

    Attributes:
        stage: Name of the stage (graph node) that failed.
        cause_message: Original error message from the stage.
    """

    def __init__(self, stage: str, message: str, run_id: Optional[str] = None):
        self.stage = stage
        self.cause_message = message
        self.run_id = run_id
        super().__init__(f"Pipeline stage '{stage}' failed: {message}")


__all__ = [
    # Base
    "PipelineBaseError",
    # Core
    "ValidationError",
    "DatabaseError",
    "ConfigurationError",
    "RetryExhaustedError",
    "NodeTimeoutError",
    # Generative service
    "GenerationError",
    "EmptyResponseError",
    "MalformedResponseError",
    # Stages
    "SignalSourceError",
    "ConceptExtractionError",
    "ConceptCacheError",
    "CompanyProfileError",
    "ConceptMatchError",
    "GapAnalysisError",
    "IdeaGenerationError",
    "IdeaValidationError",
    "NotificationError",
    "PipelineStageError",
]
