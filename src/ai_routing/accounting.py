"""Usage Accountant: token cost and per-model call counters."""

import logging

from src.ai_routing.models import ModelRecord
from src.ai_routing.repository import RoutingRepository

logger = logging.getLogger(__name__)

TOKENS_PER_PRICE_UNIT = 1_000_000


def compute_cost(
    input_tokens: int,
    output_tokens: int,
    input_price: float,
    output_price: float,
) -> float:
    """Cost in currency units; prices are per 1,000,000 tokens."""
    return (
        (input_tokens / TOKENS_PER_PRICE_UNIT) * input_price
        + (output_tokens / TOKENS_PER_PRICE_UNIT) * output_price
    )


class UsageAccountant:
    """Computes call cost and records attempts against a model."""

    def __init__(self, repository: RoutingRepository):
        self.repository = repository

    @staticmethod
    def account(model: ModelRecord, input_tokens: int, output_tokens: int) -> float:
        return compute_cost(input_tokens, output_tokens, model.input_price, model.output_price)

    async def record_attempt(self, model_id: str, success: bool) -> None:
        """Increment ``total_calls`` and, on success, ``success_calls``.

        The increment happens in storage, never as read-modify-write here.
        """
        await self.repository.increment_model_counters(model_id, success)
        logger.debug(
            f"Recorded {'successful' if success else 'failed'} call for {model_id}",
            extra={"model_id": model_id},
        )
