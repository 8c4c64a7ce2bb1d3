"""Token cost accounting."""

import logging

from storechat.config.schema import ModelPricing

logger = logging.getLogger(__name__)


def calculate_model_cost(
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    pricing: dict[str, ModelPricing],
) -> float:
    """Cost in USD of one call, with prices given per million tokens.

    Unknown models cost nothing and log a warning.
    """
    price = pricing.get(model)
    if price is None:
        logger.warning("No pricing configured for model '%s'", model)
        return 0.0
    input_cost = (prompt_tokens / 1000) * (price.input_price / 1000)
    output_cost = (completion_tokens / 1000) * (price.output_price / 1000)
    return input_cost + output_cost
