"""
Tests for the Chat Service request flow.
"""

import pytest

from fakes import FakeAdapter, RecordingHook, make_context
from gateway.config import GatewaySettings
from gateway.exceptions import RateLimitExceededError
from gateway.service import ChatService, build_guardrails
from gateway.streaming import StreamEventType
from guardrails.exceptions import ContentRejectedError
from model_router.classifier import HeuristicClassifier
from model_router.router import ModelRouter
from tracking.hooks import UsageHookDispatcher


def _service(adapters, settings=None, hook=None):
    settings = settings or GatewaySettings(streaming={"cancel_grace_seconds": 0})
    service = ChatService.from_settings(
        HeuristicClassifier(), ModelRouter(make_context(adapters)), settings
    )
    if hook is not None:
        service._usage_hooks = UsageHookDispatcher([hook])
    return service


async def _collect(service, request):
    events = await service.stream(request)
    return [event async for event in events]


class TestBuildGuardrails:
    def test_disabled_by_default(self):
        assert not build_guardrails(GatewaySettings().guardrails)

    def test_moderation_before_masking(self):
        settings = GatewaySettings(
            guardrails={
                "pii_masking": {"enabled": True},
                "content_moderation": {"enabled": True, "blocked_terms": ["x"]},
            }
        )
        names = [f.name for f in build_guardrails(settings.guardrails).filters]
        assert names == ["content_moderation", "pii_masking"]


class TestComplete:
    """Test non-streaming completions."""

    @pytest.mark.asyncio
    async def test_routes_by_tier(self, make_request):
        adapter = FakeAdapter("fake", ["gpt-", "claude-"])
        service = _service([adapter])

        eco = await service.complete(make_request("Hi"))
        premium = await service.complete(make_request("Please refactor this module"))

        assert eco.model == "gpt-3.5-turbo"
        assert premium.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_usage_event_dispatched(self, make_request):
        hook = RecordingHook()
        service = _service([FakeAdapter("fake", ["gpt-"])], hook=hook)

        response = await service.complete(make_request("Hi", user="alice"))

        assert len(hook.events) == 1
        event = hook.events[0]
        assert event.request_id == response.id
        assert event.user == "alice"
        assert event.tier == "ECO"
        assert event.provider == "fake"
        assert (event.prompt_tokens, event.completion_tokens) == (5, 7)
        assert event.streamed is False
        assert event.estimated is False

    @pytest.mark.asyncio
    async def test_input_masked_before_routing(self, make_request):
        adapter = FakeAdapter("fake", ["gpt-"])
        settings = GatewaySettings(guardrails={"pii_masking": {"enabled": True}})
        service = _service([adapter], settings)

        await service.complete(make_request("mail me at a@b.io"))

        assert adapter.requests[0].messages[0].content == "mail me at [REDACTED:EMAIL]"

    @pytest.mark.asyncio
    async def test_blocked_input_rejected(self, make_request):
        adapter = FakeAdapter("fake", ["gpt-"])
        settings = GatewaySettings(
            guardrails={"content_moderation": {"enabled": True, "blocked_terms": ["secret"]}}
        )
        service = _service([adapter], settings)

        with pytest.raises(ContentRejectedError):
            await service.complete(make_request("tell me the SECRET"))
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_blocked_output_rejected(self, make_request):
        settings = GatewaySettings(
            guardrails={"content_moderation": {"enabled": True, "blocked_terms": ["answer from"]}}
        )
        service = _service([FakeAdapter("fake", ["gpt-"])], settings)

        with pytest.raises(ContentRejectedError):
            await service.complete(make_request("Hi"))

    @pytest.mark.asyncio
    async def test_rate_limit(self, make_request):
        settings = GatewaySettings(rate_limit={"enabled": True, "default_limit": 1})
        service = _service([FakeAdapter("fake", ["gpt-"])], settings)

        await service.complete(make_request("Hi", user="alice"))
        await service.complete(make_request("Hi", user="bob"))

        with pytest.raises(RateLimitExceededError):
            await service.complete(make_request("Hi", user="alice"))


class TestStream:
    """Test streaming completions through the service."""

    @pytest.mark.asyncio
    async def test_stream_events_and_usage(self, make_request):
        hook = RecordingHook()
        adapter = FakeAdapter("fake", ["gpt-"], chunks=["Hello", " world"])
        service = _service([adapter], hook=hook)

        events = await _collect(service, make_request("Hi"))

        assert [e.type for e in events] == [StreamEventType.CHUNK] * 3 + [StreamEventType.DONE]
        assert "".join(e.chunk.content for e in events[:-1]) == "Hello world"
        assert len(hook.events) == 1
        assert hook.events[0].streamed is True
        assert hook.events[0].estimated is True
        assert hook.events[0].model == "gpt-3.5-turbo"

    @pytest.mark.asyncio
    async def test_chunks_masked(self, make_request):
        settings = GatewaySettings(
            streaming={"cancel_grace_seconds": 0}, guardrails={"pii_masking": {"enabled": True}}
        )
        adapter = FakeAdapter("fake", ["gpt-"], chunks=["write to a@b.io ", "ok"])
        service = _service([adapter], settings)

        events = await _collect(service, make_request("Hi"))

        assert events[0].chunk.content == "write to [REDACTED:EMAIL] "

    @pytest.mark.asyncio
    async def test_pii_split_across_chunks_is_masked(self, make_request):
        settings = GatewaySettings(
            streaming={"cancel_grace_seconds": 0}, guardrails={"pii_masking": {"enabled": True}}
        )
        adapter = FakeAdapter("fake", ["gpt-"], chunks=["mail john@exa", "mple.com today"])
        service = _service([adapter], settings)

        events = await _collect(service, make_request("Hi"))

        chunks = [e.chunk for e in events if e.type == StreamEventType.CHUNK]
        assert events[-1].type == StreamEventType.DONE
        assert "".join(c.content for c in chunks) == "mail [REDACTED:EMAIL] today"
        assert chunks[-1].finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_rejected_chunk_ends_stream_with_error(self, make_request):
        hook = RecordingHook()
        settings = GatewaySettings(
            streaming={"cancel_grace_seconds": 0},
            guardrails={"content_moderation": {"enabled": True, "blocked_terms": ["bad"]}},
        )
        adapter = FakeAdapter("fake", ["gpt-"], chunks=["fine ", "bad ", "more"])
        service = _service([adapter], settings, hook=hook)

        events = await _collect(service, make_request("Hi"))

        assert [e.type for e in events] == [StreamEventType.CHUNK, StreamEventType.ERROR]
        assert events[1].error.error.type == "invalid_request_error"
        assert events[1].error.error.code == "content_rejected"
        assert hook.events == []

    @pytest.mark.asyncio
    async def test_admission_errors_raised_before_stream(self, make_request):
        settings = GatewaySettings(
            guardrails={"content_moderation": {"enabled": True, "blocked_terms": ["secret"]}}
        )
        service = _service([FakeAdapter("fake", ["gpt-"])], settings)

        with pytest.raises(ContentRejectedError):
            await service.stream(make_request("secret", stream=True))
        assert service.orchestrator.active_sessions == 0


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self):
        service = _service([FakeAdapter("on", ["gpt-"]), FakeAdapter("off", ["claude-"], enabled=False)])

        assert service.health() == {
            "status": "healthy",
            "providers": {"on": True, "off": False},
            "active_streams": 0,
        }

    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self):
        service = _service([FakeAdapter("fake", ["gpt-"])])
        await service.startup()
        await service.shutdown()
        assert service.orchestrator.active_sessions == 0
