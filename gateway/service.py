"""
Chat Service - coordinates one chat request through the gateway.

Non-streaming flow:
1. Rate-limit check
2. Input guardrails on every message
3. Classification to a routing tier
4. Routing through the tier's model chain
5. Output guardrails on the answer
6. Usage hooks (fire-and-forget)

The streaming flow runs steps 1-2 on the request path, then hands the
request to the streaming orchestrator and filters the streamed text on its way
out. With output filters enabled, text is released on word boundaries so a
term split across chunks is still matched.
"""

import time
from typing import AsyncIterator, Dict, List, Optional, Tuple

from common.logging import get_logger
from gateway.config import GatewaySettings, GuardrailSettings
from gateway.models import ErrorResponse
from gateway.streaming import StreamEvent, StreamEventType, StreamingOrchestrator, StreamSession
from guardrails.exceptions import ContentRejectedError
from guardrails.interfaces import TextFilter
from guardrails.moderation import ContentModerationFilter
from guardrails.pii_masking import PIIMaskingFilter
from guardrails.pipeline import GuardrailPipeline
from model_router.classifier import TierClassifier
from model_router.models import ChatRequest, ChatResponse
from model_router.providers import estimate_prompt_tokens, estimate_tokens
from model_router.router import ModelRouter
from tracking.cost import CostTracker
from tracking.hooks import UsageEvent, UsageHookDispatcher
from tracking.rate_limit import RateLimiter

logger = get_logger(__name__)

ANONYMOUS_USER = "anonymous"


def build_guardrails(settings: GuardrailSettings) -> GuardrailPipeline:
    """Moderation runs before masking so blocked terms are matched on raw text."""
    filters: List[TextFilter] = []
    if settings.content_moderation.enabled:
        filters.append(ContentModerationFilter(settings.content_moderation.blocked_terms))
    if settings.pii_masking.enabled:
        filters.append(PIIMaskingFilter())
    return GuardrailPipeline(filters)


class ChatService:
    """
    Entry point used by the HTTP layer for chat completions.

    Args:
        classifier: Assigns a routing tier to each request
        router: Walks tier chains against the adapter registry
        orchestrator: Runs streaming sessions
        guardrails: Filters applied to request and response text
        rate_limiter: Optional per-user request budget
        usage_hooks: Receivers of per-request usage events
    """

    def __init__(
        self,
        classifier: TierClassifier,
        router: ModelRouter,
        orchestrator: StreamingOrchestrator,
        guardrails: Optional[GuardrailPipeline] = None,
        rate_limiter: Optional[RateLimiter] = None,
        usage_hooks: Optional[UsageHookDispatcher] = None,
    ):
        self._classifier = classifier
        self._router = router
        self._orchestrator = orchestrator
        self._guardrails = guardrails or GuardrailPipeline()
        self._rate_limiter = rate_limiter
        self._usage_hooks = usage_hooks or UsageHookDispatcher()

    @classmethod
    def from_settings(
        cls,
        classifier: TierClassifier,
        router: ModelRouter,
        settings: GatewaySettings,
    ) -> "ChatService":
        """Wire guardrails, rate limiting and cost tracking from gateway settings."""
        hooks = UsageHookDispatcher()

        rate_limiter = None
        if settings.rate_limit.enabled:
            rate_limiter = RateLimiter(
                limit=settings.rate_limit.default_limit,
                window_seconds=settings.rate_limit.window_seconds,
            )
            hooks.add(rate_limiter)

        if settings.cost_tracking.enabled:
            hooks.add(CostTracker(settings.cost_tracking.prices or None))

        return cls(
            classifier=classifier,
            router=router,
            orchestrator=StreamingOrchestrator(classifier, router, settings.streaming),
            guardrails=build_guardrails(settings.guardrails),
            rate_limiter=rate_limiter,
            usage_hooks=hooks,
        )

    @property
    def router(self) -> ModelRouter:
        return self._router

    @property
    def orchestrator(self) -> StreamingOrchestrator:
        return self._orchestrator

    async def startup(self) -> None:
        await self._router.initialize()

    async def shutdown(self) -> None:
        await self._orchestrator.shutdown()
        await self._router.aclose()

    def health(self) -> Dict[str, object]:
        return {
            "status": "healthy",
            "providers": self._router.provider_status(),
            "active_streams": self._orchestrator.active_sessions,
        }

    @staticmethod
    def _user_key(request: ChatRequest) -> str:
        return request.user or ANONYMOUS_USER

    def _admit(self, request: ChatRequest) -> ChatRequest:
        """
        Raises:
            RateLimitExceededError: If the caller is over budget
            ContentRejectedError: If a message is rejected by a filter
        """
        if self._rate_limiter is not None:
            self._rate_limiter.check(self._user_key(request))
        return self._guardrails.apply_to_request(request)

    async def complete(self, request: ChatRequest) -> ChatResponse:
        """
        Produce a complete (non-streaming) answer.

        Provider failures never surface here; the router answers with a
        placeholder when every candidate fails.

        Raises:
            RateLimitExceededError: If the caller is over budget
            ContentRejectedError: If the request or the answer is rejected
        """
        start_time = time.time()
        request = self._admit(request)

        tier = self._classifier.classify(request)
        logger.info("request_classified", tier=tier.value, messages=len(request.messages))

        response = await self._router.route(request, tier)
        response = self._guardrails.apply_to_response(response)

        usage = response.usage
        self._usage_hooks.dispatch(
            UsageEvent(
                request_id=response.id,
                user=self._user_key(request),
                model=response.model,
                provider=response.provider,
                tier=tier.value,
                prompt_tokens=usage.prompt_tokens if usage else estimate_prompt_tokens(request),
                completion_tokens=usage.completion_tokens if usage else estimate_tokens(response.content),
                estimated=usage is None,
                latency_ms=round((time.time() - start_time) * 1000, 2),
            )
        )
        return response

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """
        Open a streaming session and return its event iterator.

        Admission checks run before the session opens, so their errors are
        raised here rather than inside the stream.

        Raises:
            RateLimitExceededError: If the caller is over budget
            ContentRejectedError: If a message is rejected by a filter
        """
        request = self._admit(request)
        session = self._orchestrator.open_session(request)
        return self._relay(session, request, time.time())

    async def _relay(
        self,
        session: StreamSession,
        request: ChatRequest,
        start_time: float,
    ) -> AsyncIterator[StreamEvent]:
        parts: List[str] = []
        last_chunk: Optional[ChatResponse] = None
        # Text held back until a word boundary so filters see whole words.
        pending = ""
        try:
            async for event in session.events():
                if event.type == StreamEventType.CHUNK:
                    chunk = event.chunk
                    if self._guardrails:
                        text = pending + chunk.content
                        if chunk.finish_reason is None:
                            text, pending = _split_at_word_boundary(text)
                            if not text:
                                continue
                        else:
                            pending = ""
                        try:
                            chunk = self._guardrails.apply_to_response(chunk.with_content(text))
                        except ContentRejectedError as e:
                            session.fail(e)
                            yield StreamEvent.failure(
                                ErrorResponse.invalid_request(str(e), code=e.error_code)
                            )
                            return
                    parts.append(chunk.content)
                    last_chunk = chunk
                    yield StreamEvent.of_chunk(chunk)
                    continue

                if event.type == StreamEventType.DONE and last_chunk is not None:
                    self._record_stream_usage(session, request, last_chunk, parts, start_time)
                yield event
        finally:
            session.close()

    def _record_stream_usage(
        self,
        session: StreamSession,
        request: ChatRequest,
        last_chunk: ChatResponse,
        parts: List[str],
        start_time: float,
    ) -> None:
        self._usage_hooks.dispatch(
            UsageEvent(
                request_id=last_chunk.id,
                user=self._user_key(request),
                model=last_chunk.model,
                provider=last_chunk.provider,
                tier=session.tier.value if session.tier else None,
                prompt_tokens=estimate_prompt_tokens(request),
                completion_tokens=estimate_tokens("".join(parts)),
                streamed=True,
                estimated=True,
                latency_ms=round((time.time() - start_time) * 1000, 2),
            )
        )


def _split_at_word_boundary(text: str) -> Tuple[str, str]:
    """Split after the last whitespace character; the tail is an unfinished word."""
    for index in range(len(text) - 1, -1, -1):
        if text[index].isspace():
            return text[: index + 1], text[index + 1:]
    return "", text
