"""
Cost tracking hook.

Prices each completed request from a per-model price table and keeps
running totals per user in memory.
"""

import threading
from typing import Dict, Optional

from common.logging import get_logger
from model_router.router import MOCK_PROVIDER
from tracking.hooks import UsageEvent, UsageHook

logger = get_logger(__name__)

# USD per 1K tokens, keyed by model-name prefix.
DEFAULT_PRICES: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"prompt": 0.00015, "completion": 0.0006},
    "gpt-4o": {"prompt": 0.0025, "completion": 0.01},
    "gpt-4-turbo": {"prompt": 0.01, "completion": 0.03},
    "gpt-3.5-turbo": {"prompt": 0.0005, "completion": 0.0015},
    "claude-3-5-sonnet": {"prompt": 0.003, "completion": 0.015},
    "claude-3-5-haiku": {"prompt": 0.0008, "completion": 0.004},
    "claude-3-opus": {"prompt": 0.015, "completion": 0.075},
    "claude-3-sonnet": {"prompt": 0.003, "completion": 0.015},
    "claude-3-haiku": {"prompt": 0.00025, "completion": 0.00125},
}


class CostTracker(UsageHook):
    """
    Accumulates request cost per user.

    The longest price-table prefix matching the model name wins. Models
    without a price, and synthesized fallback answers, cost nothing.
    """

    def __init__(self, prices: Optional[Dict[str, Dict[str, float]]] = None):
        self._prices = dict(prices) if prices else dict(DEFAULT_PRICES)
        self._totals: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "cost_tracker"

    def _price_for(self, model: str) -> Optional[Dict[str, float]]:
        matches = [prefix for prefix in self._prices if model.startswith(prefix)]
        if not matches:
            return None
        return self._prices[max(matches, key=len)]

    def cost_for(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """
        Cost in USD of one request.

        Returns:
            0.0 when the model has no configured price
        """
        price = self._price_for(model)
        if price is None:
            return 0.0
        return (
            prompt_tokens / 1000 * price.get("prompt", 0.0)
            + completion_tokens / 1000 * price.get("completion", 0.0)
        )

    def record(self, event: UsageEvent) -> None:
        cost = 0.0 if event.provider == MOCK_PROVIDER else self.cost_for(
            event.model, event.prompt_tokens, event.completion_tokens
        )

        with self._lock:
            totals = self._totals.setdefault(
                event.user, {"requests": 0, "total_tokens": 0, "cost_usd": 0.0}
            )
            totals["requests"] += 1
            totals["total_tokens"] += event.total_tokens
            totals["cost_usd"] += cost

        logger.info(
            "usage_recorded",
            request_id=event.request_id,
            user=event.user,
            model=event.model,
            provider=event.provider,
            tier=event.tier,
            prompt_tokens=event.prompt_tokens,
            completion_tokens=event.completion_tokens,
            total_tokens=event.total_tokens,
            estimated=event.estimated,
            cost_usd=round(cost, 6),
        )

    def totals_for(self, user: str) -> Dict[str, float]:
        with self._lock:
            return dict(self._totals.get(user, {"requests": 0, "total_tokens": 0, "cost_usd": 0.0}))

    @property
    def total_cost(self) -> float:
        with self._lock:
            return sum(totals["cost_usd"] for totals in self._totals.values())
