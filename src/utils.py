"""
Shared utility functions used throughout the trend-fusion pipeline.

Provides:
    - utc_now(): Timezone-aware UTC datetime (for Supabase TIMESTAMPTZ columns)
    - generate_id(): UUID4 string generator (run ids, record keys)
    - ensure_utc(dt): Convert any datetime to timezone-aware UTC
    - parse_timestamp(value): Lenient ISO-8601 / epoch parsing to aware UTC
    - hours_since(dt): Age of a timestamp in fractional hours
    - normalize_concept_name(name): Identity key for trend concepts
    - strip_code_fences(text): Remove markdown fences around model output
    - coerce_number(value, default): Tolerant numeric coercion for model output
    - @with_retry: Decorator with exponential backoff for transient failures
"""

from datetime import datetime, timezone
import uuid
import asyncio
import logging
import re
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

from src.exceptions import RetryExhaustedError

# ---------------------------------------------------------------------------
# Type variable for generic return types in the retry decorator
# ---------------------------------------------------------------------------
T = TypeVar("T")

logger = logging.getLogger(__name__)

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


# ===========================================================================
# TIMEZONE UTILITIES
# All timestamps stored in Supabase must be timezone-aware (TIMESTAMPTZ)
# ===========================================================================


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime in UTC.
    """
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Generate a unique UUID4 string for run ids and database records."""
    return str(uuid.uuid4())


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: Datetime to convert (naive or aware).

    Returns:
        Timezone-aware datetime in UTC.
    """
    if dt.tzinfo is None:
        # Assume naive datetime is UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, int, float, datetime, None]) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (a trailing ``Z`` is allowed) and
    epoch seconds.  Returns ``None`` for empty or unparsable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def hours_since(dt: datetime, now: Optional[datetime] = None) -> float:
    """Return the age of ``dt`` in fractional hours (never negative)."""
    reference = now or utc_now()
    delta = ensure_utc(reference) - ensure_utc(dt)
    return max(0.0, delta.total_seconds() / 3600.0)


# ===========================================================================
# TEXT HELPERS
# ===========================================================================


def normalize_concept_name(name: str) -> str:
    """
    Normalize a concept name into its identity key.

    Lowercases, collapses every run of characters outside ``[a-z0-9]`` into
    a single space and trims, so ``"Model Context Protocol (MCP)"`` and
    ``"model-context protocol mcp"`` compare equal.

    Args:
        name: Display name of a concept.

    Returns:
        The normalized key (may be empty).
    """
    return _NON_ALNUM_RUN.sub(" ", (name or "").lower()).strip()


def strip_code_fences(text: str) -> str:
    """
    Remove a surrounding markdown code fence (```json ... ```) if present.

    Args:
        text: Raw model output.

    Returns:
        The inner text, stripped of surrounding whitespace.
    """
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        # Remove opening fence (e.g. ```json)
        first_newline = cleaned.find("\n")
        if first_newline != -1:
            cleaned = cleaned[first_newline + 1 :]
        else:
            cleaned = cleaned[3:]
        # Remove closing fence
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def coerce_number(value: Any, default: float) -> float:
    """
    Coerce a model-supplied value into a float.

    Booleans and values that cannot be converted yield ``default``.
    """
    if isinstance(value, bool) or value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# ===========================================================================
# RETRY DECORATOR WITH EXPONENTIAL BACKOFF
# Retries are for transient failures (rate limits, timeouts, dropped
# connections). Eventually raises if all attempts fail.
# ===========================================================================


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    operation_name: Optional[str] = None,
) -> Callable:
    """
    Decorator for async retry logic with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default ``3``).
        base_delay: Delay in seconds before the first retry; doubles after
            every further failure (``base_delay * 2 ** (attempt - 1)``).
        retryable_exceptions: Exception types that trigger a retry.  Anything
            else propagates immediately.
        operation_name: Name used in log messages (defaults to the wrapped
            function's ``__name__``).

    Raises:
        RetryExhaustedError: When every attempt failed.  The final exception
            is kept as ``last_error``.
        TypeError: When applied to a function that is not a coroutine
            function.

    Usage::

        @with_retry(
            max_attempts=3,
            base_delay=1.0,
            retryable_exceptions=(APIConnectionError, RateLimitError),
        )
        async def call_model(prompt: str) -> str:
            ...
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"with_retry requires an async function, got {func!r}")
        op_name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Optional[Exception] = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_error = e
                    if attempt == max_attempts:
                        break
                    delay = base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        "[RETRY] %s attempt %d/%d failed: %s. Retrying in %.1fs...",
                        op_name,
                        attempt,
                        max_attempts,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)

            logger.error(
                "[RETRY EXHAUSTED] %s failed after %d attempts: %s",
                op_name,
                max_attempts,
                last_error,
            )
            raise RetryExhaustedError(
                op_name, max_attempts, last_error  # type: ignore[arg-type]
            )

        return wrapper

    return decorator
