"""
Cost tracker for LLM calls.

Pricing is resolved once per distinct model at job start and cached for the
job's lifetime. Every call is appended to an ordered log; a call whose usage
or pricing is unknown keeps cost_usd=None so totals are never silently
understated.
"""

import asyncio
from typing import Callable, Dict, Iterable, List, Optional

from extraction.models import (
    CostBreakdown,
    CostCall,
    GenerationCost,
    ModelPricing,
    TokenUsage,
)
from utils.logger import setup_logger

logger = setup_logger(__name__)


def compute_cost_usd(pricing: ModelPricing, prompt_tokens: int, completion_tokens: int) -> float:
    """prompt x rate + completion x rate + flat request fee."""
    prompt = max(0, prompt_tokens) * pricing.prompt_usd_per_token
    completion = max(0, completion_tokens) * pricing.completion_usd_per_token
    return prompt + completion + pricing.request_usd


def is_chapters_step(step: str) -> bool:
    return step == "chapters"


def is_feedback_step(step: str) -> bool:
    return step == "feedback"


def writing_pass(step: str) -> Optional[str]:
    """Pass of a `write:<piece>:<pass>[:<chapter id>]` step, or None for other steps.

    Chapter ids come from the model, so only the fixed third field is read.
    """
    parts = step.split(":", 3)
    if len(parts) < 3 or parts[0] != "write":
        return None
    return parts[2]


def is_writing_v1_step(step: str) -> bool:
    return writing_pass(step) == "v1"


def is_writing_v2_step(step: str) -> bool:
    return writing_pass(step) == "v2"


class CostTracker:
    """Track per-call token usage and USD cost across one job."""

    def __init__(self):
        self.pricing: Dict[str, Optional[ModelPricing]] = {}
        self.calls: List[CostCall] = []

    async def resolve_pricing(self, model_ids: Iterable[str], lookup) -> Dict[str, Optional[ModelPricing]]:
        """Fetch pricing for every distinct model id in parallel.

        Args:
            model_ids: Model ids used by the job (duplicates allowed)
            lookup: async callable model_id -> ModelPricing | None

        Returns:
            The pricing cache
        """
        pending = [m for m in dict.fromkeys(model_ids) if m not in self.pricing]
        results = await asyncio.gather(*(lookup(m) for m in pending), return_exceptions=True)
        for model_id, result in zip(pending, results):
            if isinstance(result, BaseException):
                logger.warning(f"Pricing unavailable for {model_id}: {result}")
                result = None
            elif result is None:
                logger.warning(f"Pricing unavailable for {model_id}")
            self.pricing[model_id] = result
        return self.pricing

    def push_cost(self, step: str, model: str, usage: Optional[TokenUsage] = None) -> Optional[float]:
        """Append one call to the log and return its cost (None when unknown)."""
        pricing = self.pricing.get(model)
        cost_usd = None
        if pricing is not None and usage is not None:
            cost_usd = compute_cost_usd(pricing, usage.prompt_tokens, usage.completion_tokens)
        self.calls.append(CostCall(step=step, model=model, usage=usage, cost_usd=cost_usd))
        return cost_usd

    def sum_where(self, predicate: Callable[[str], bool]) -> float:
        return sum(c.cost_usd for c in self.calls if c.cost_usd is not None and predicate(c.step))

    @property
    def total_usd(self) -> float:
        return sum(c.cost_usd for c in self.calls if c.cost_usd is not None)

    @property
    def unknown_calls(self) -> int:
        return sum(1 for c in self.calls if c.cost_usd is None)

    def summary(self) -> GenerationCost:
        """Aggregate the call log into the stored cost report."""
        return GenerationCost(
            total_usd=self.total_usd,
            unknown_calls=self.unknown_calls,
            breakdown_usd=CostBreakdown(
                chapters=self.sum_where(is_chapters_step),
                writing_v1=self.sum_where(is_writing_v1_step),
                feedback=self.sum_where(is_feedback_step),
                writing_v2=self.sum_where(is_writing_v2_step),
            ),
            pricing=dict(self.pricing),
            calls=list(self.calls),
        )
