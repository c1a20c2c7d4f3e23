"""
Token cost accounting for generative-service calls.

Prices are per million tokens and come from ``Settings.model_pricing``;
models missing from the table fall back to its ``"default"`` entry.
"""

import logging
from typing import Any, Dict, Optional

from src.models import CostInfo, TokenUsage
from src.utils import utc_now

logger = logging.getLogger(__name__)

COST_SERVICE_NAME = "trend-fusion-ideas"

_FALLBACK_PRICING: Dict[str, float] = {"input": 3.0, "output": 15.0}


def calculate_cost(
    usage: TokenUsage,
    model: str,
    pricing: Optional[Dict[str, Dict[str, float]]] = None,
) -> CostInfo:
    """Convert token usage into a :class:`CostInfo` for ``model``."""
    table = pricing or {}
    rates = table.get(model) or table.get("default") or _FALLBACK_PRICING
    input_cost = usage.input_tokens * rates["input"] / 1_000_000
    output_cost = usage.output_tokens * rates["output"] / 1_000_000
    return CostInfo(
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        model=model,
    )


def build_cost_record(
    total: CostInfo,
    company_name: str,
    website: str,
    operation_details: Dict[str, Any],
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the ``api_costs`` row persisted after a run.

    Args:
        total: Summed cost of the run.
        company_name: Company the ideas were generated for.
        website: Company website.
        operation_details: Run statistics (ideas generated, rejected, attempts...).
        run_id: Pipeline run identifier.

    Returns:
        A JSON-compatible dict ready for insertion.
    """
    return {
        "run_id": run_id,
        "service": COST_SERVICE_NAME,
        "model": total.model,
        "timestamp": utc_now().isoformat(),
        "input_tokens": total.input_tokens,
        "output_tokens": total.output_tokens,
        "total_tokens": total.total_tokens,
        "total_cost": round(total.total_cost, 6),
        "metadata": {
            "company_name": company_name,
            "website": website,
            "operation_details": operation_details,
        },
    }
