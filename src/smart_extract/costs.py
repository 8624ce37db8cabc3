"""Rough batch cost estimation from a per-model price table."""

from __future__ import annotations

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

# Approximate blended price per 1M tokens in USD
MODEL_PRICING: dict[str, float] = {
    "gpt-3.5-turbo": 0.50,
    "gpt-4": 30.00,
    "gpt-4-turbo": 10.00,
    "gpt-4o": 5.00,
    "gpt-4o-mini": 0.15,
    "gpt-4.1": 25.00,
    "gpt-4.1-mini": 0.20,
    "gpt-4.1-nano": 0.10,
    "gpt-5": 50.00,
    "gpt-5-mini": 1.00,
    "gpt-5-nano": 0.25,
    "o3": 60.00,
    "o3-mini": 3.00,
    "o1": 15.00,
    "o1-mini": 3.00,
}

DEFAULT_PRICE_PER_MILLION = 1.00
TOKENS_PER_TASK = 350


def cost_per_million(model: str) -> float:
    """Return the USD price per 1M tokens for ``model``.

    A ``provider/`` prefix is ignored. Unknown models use
    ``DEFAULT_PRICE_PER_MILLION``.
    """
    name = model.rsplit("/", 1)[-1]
    price = MODEL_PRICING.get(name)
    if price is None:
        logger.debug("model_price_unknown", model=model)
        return DEFAULT_PRICE_PER_MILLION
    return price


def estimate_batch_cost(
    task_count: int,
    model: str,
    tokens_per_task: int = TOKENS_PER_TASK,
) -> float:
    """Estimate the USD cost of analyzing ``task_count`` tasks.

    Args:
        task_count: Number of tasks in the batch.
        model: Model name, with or without a provider prefix.
        tokens_per_task: Average tokens consumed per task.

    Returns:
        Estimated cost in USD.
    """
    total_tokens = max(task_count, 0) * tokens_per_task
    return total_tokens / 1_000_000 * cost_per_million(model)
