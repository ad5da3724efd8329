"""
Tracking module - usage hooks, cost accounting and rate limiting
"""

from tracking.cost import CostTracker
from tracking.hooks import UsageEvent, UsageHook, UsageHookDispatcher
from tracking.rate_limit import RateLimiter

__all__ = [
    "UsageEvent",
    "UsageHook",
    "UsageHookDispatcher",
    "CostTracker",
    "RateLimiter",
]
