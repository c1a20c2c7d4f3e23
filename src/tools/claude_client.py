"""
Async Claude API client for every generative stage of the pipeline.

Uses the ``anthropic`` Python SDK (``AsyncAnthropic``) to interact with
Anthropic's Messages API.

Key features:
    - Automatic retry with exponential backoff via ``@with_retry`` for
      transient failures (connection drops, rate limits, 5xx)
    - Token usage tracking (per call and cumulative)
    - Structured JSON generation with markdown-fence stripping
    - Per-call model override (extraction and validation use a cheaper model)
    - Cost calculation from the configured pricing table

Every failure surfaces as a :class:`~src.exceptions.GenerationError`
subclass so that each stage can wrap it into its own stage error.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import anthropic
from anthropic import AsyncAnthropic

from src.cost_tracker import calculate_cost
from src.exceptions import (
    EmptyResponseError,
    GenerationError,
    MalformedResponseError,
    RetryExhaustedError,
)
from src.models import CostInfo, TokenUsage
from src.utils import strip_code_fences, with_retry

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-opus-4-5-20251101"

# Errors worth another attempt; everything else (4xx) fails immediately
TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)

JSON_INSTRUCTION = "IMPORTANT: Return ONLY valid JSON, no markdown, no explanation."


class ClaudeClient:
    """Async Claude API client for pipeline LLM calls.

    Args:
        api_key: Anthropic API key.  Falls back to the
            ``ANTHROPIC_API_KEY`` environment variable.
        model: Default model identifier.
        pricing: Per-million-token price table used for cost reporting.
        timeout: Per-request timeout in seconds.

    Raises:
        KeyError: If no API key is provided and the environment variable
            is missing.

    Usage::

        client = ClaudeClient()
        text, usage = await client.invoke(
            system="You are terse.", prompt="Say hi", temperature=0.2,
            max_tokens=50, expect_structured=False,
        )
        data, cost = await client.invoke_json(system=..., prompt=...)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        pricing: Optional[Dict[str, Dict[str, float]]] = None,
        timeout: float = 120.0,
    ) -> None:
        self.client = AsyncAnthropic(
            api_key=api_key or os.environ["ANTHROPIC_API_KEY"],
            timeout=timeout,
        )
        self.model = model
        self.pricing = pricing or {}
        self._total_input_tokens: int = 0
        self._total_output_tokens: int = 0

    # ------------------------------------------------------------------
    # Raw call
    # ------------------------------------------------------------------

    @with_retry(
        max_attempts=3,
        base_delay=2.0,
        retryable_exceptions=TRANSIENT_ERRORS,
        operation_name="claude.messages.create",
    )
    async def _create(self, **kwargs: Any) -> Any:
        return await self.client.messages.create(**kwargs)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def invoke(
        self,
        system: str,
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        expect_structured: bool = True,
        model: Optional[str] = None,
    ) -> Tuple[str, TokenUsage]:
        """Send one system + user message pair and return the text reply.

        Args:
            system: System prompt.
            prompt: User message content.
            temperature: Sampling temperature (0.0 -- 1.0).
            max_tokens: Maximum tokens in the response.
            expect_structured: Append an explicit JSON-only instruction.
            model: Override the client's default model for this call.

        Returns:
            Tuple of (text content, token usage).

        Raises:
            EmptyResponseError: If the reply contains no text.
            GenerationError: If the API call fails (after retries for
                transient errors).
        """
        content = f"{prompt}\n\n{JSON_INSTRUCTION}" if expect_structured else prompt
        messages: List[Dict[str, str]] = [{"role": "user", "content": content}]

        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._create(**kwargs)
        except RetryExhaustedError as exc:
            raise GenerationError(str(exc)) from exc
        except anthropic.APIError as exc:
            raise GenerationError(f"Claude API error: {exc}") from exc

        usage = TokenUsage(
            input_tokens=getattr(response.usage, "input_tokens", 0) or 0,
            output_tokens=getattr(response.usage, "output_tokens", 0) or 0,
        )
        self._total_input_tokens += usage.input_tokens
        self._total_output_tokens += usage.output_tokens

        logger.debug(
            "Claude invoke (%s): in=%d out=%d tokens",
            kwargs["model"],
            usage.input_tokens,
            usage.output_tokens,
        )

        text = "".join(
            getattr(block, "text", "") or ""
            for block in (response.content or [])
            if getattr(block, "type", "text") == "text"
        )
        if not text.strip():
            raise EmptyResponseError(
                f"Claude returned empty content (model={kwargs['model']})"
            )
        return text, usage

    async def invoke_json(
        self,
        system: str,
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        model: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], CostInfo]:
        """Invoke with a JSON-only instruction and parse the reply.

        Markdown code fences (` ```json ... ``` `) are stripped before
        parsing.

        Returns:
            Tuple of (parsed JSON object, cost of the call).

        Raises:
            EmptyResponseError: If the reply contains no text.
            MalformedResponseError: If the reply is not a JSON object.
            GenerationError: If the API call fails.
        """
        used_model = model or self.model
        text, usage = await self.invoke(
            system=system,
            prompt=prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            expect_structured=True,
            model=used_model,
        )
        cost = calculate_cost(usage, used_model, self.pricing)

        cleaned = strip_code_fences(text)
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(
                f"Claude returned invalid JSON: {exc}", raw_text=cleaned
            ) from exc
        if not isinstance(parsed, dict):
            raise MalformedResponseError(
                f"Expected a JSON object, got {type(parsed).__name__}",
                raw_text=cleaned,
            )
        return parsed, cost

    # ------------------------------------------------------------------
    # Usage tracking
    # ------------------------------------------------------------------

    @property
    def usage_stats(self) -> Dict[str, int]:
        """Cumulative token usage since this client was instantiated.

        Returns:
            Dict with ``input_tokens`` and ``output_tokens`` keys.
        """
        return {
            "input_tokens": self._total_input_tokens,
            "output_tokens": self._total_output_tokens,
        }

    def reset_usage(self) -> None:
        """Reset cumulative token counters to zero."""
        self._total_input_tokens = 0
        self._total_output_tokens = 0


# ---------------------------------------------------------------------------
# MODULE-LEVEL FACTORY
# ---------------------------------------------------------------------------


def get_claude(
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> ClaudeClient:
    """Create a :class:`ClaudeClient` configured from the global settings.

    Args:
        api_key: Anthropic API key.  Falls back to the
            ``ANTHROPIC_API_KEY`` environment variable.
        model: Default model identifier.  Defaults to ``Settings.llm_model``.

    Returns:
        A new ``ClaudeClient`` instance.
    """
    from src.config import get_settings

    settings = get_settings()
    return ClaudeClient(
        api_key=api_key,
        model=model or settings.llm_model,
        pricing=settings.model_pricing,
        timeout=settings.llm_timeout_seconds,
    )
