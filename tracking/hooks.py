"""
Usage hooks - per-request usage events and their dispatch.

Hooks observe completed requests. They never influence routing and a
failing hook never fails the request.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.logging import get_logger

logger = get_logger(__name__)


class UsageEvent(BaseModel):
    """Token usage of one completed request."""

    request_id: str = Field(..., description="Completion id of the response")
    user: str = Field("anonymous", description="Caller key used for limits and cost totals")
    model: str
    provider: Optional[str] = None
    tier: Optional[str] = None
    prompt_tokens: int = Field(0, ge=0)
    completion_tokens: int = Field(0, ge=0)
    streamed: bool = False
    estimated: bool = Field(False, description="True when token counts are estimates")
    latency_ms: Optional[float] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class UsageHook(ABC):
    """Receives a UsageEvent for every completed request."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def record(self, event: UsageEvent) -> None:
        pass


class UsageHookDispatcher:
    """
    Fans a UsageEvent out to every registered hook.

    Each hook runs in isolation: an exception is logged and the remaining
    hooks still run.
    """

    def __init__(self, hooks: Optional[List[UsageHook]] = None):
        self._hooks: List[UsageHook] = list(hooks or [])

    def add(self, hook: UsageHook) -> None:
        self._hooks.append(hook)

    @property
    def hooks(self) -> List[UsageHook]:
        return self._hooks.copy()

    def dispatch(self, event: UsageEvent) -> None:
        for hook in self._hooks:
            try:
                hook.record(event)
            except Exception as e:
                # Don't fail the request if a hook fails
                logger.error(
                    "usage_hook_failed",
                    hook=hook.name,
                    request_id=event.request_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
