"""
Tests for the Model Router failover walk.
"""

import pytest

from fakes import FakeAdapter, make_context
from model_router.models import RoutingTier
from model_router.router import MOCK_PROVIDER, ModelRouter

ECO_CHAIN = ["m1-base", "m2-base", "m3-base"]


async def _stream(router, request, tier):
    chunks = []

    async def on_chunk(chunk):
        chunks.append(chunk)

    await router.route_streaming(request, tier, on_chunk)
    return chunks


class TestRoute:
    """Test non-streaming routing."""

    @pytest.mark.asyncio
    async def test_first_candidate_served(self, make_request):
        m1 = FakeAdapter("p1", ["m1-"])
        m2 = FakeAdapter("p2", ["m2-"])
        router = ModelRouter(make_context([m1, m2], chains={RoutingTier.ECO: ECO_CHAIN}))

        response = await router.route(make_request(), RoutingTier.ECO)

        assert response.model == "m1-base"
        assert response.provider == "p1"
        assert m1.calls == ["m1-base"]
        assert m2.calls == []

    @pytest.mark.asyncio
    async def test_only_enabled_adapter_serves(self, make_request):
        m1 = FakeAdapter("p1", ["m1-"], enabled=False)
        m2 = FakeAdapter("p2", ["m2-"])
        m3 = FakeAdapter("p3", ["m3-"], enabled=False)
        router = ModelRouter(make_context([m1, m2, m3], chains={RoutingTier.ECO: ECO_CHAIN}))

        response = await router.route(make_request(), RoutingTier.ECO)

        assert response.model == "m2-base"
        assert m1.calls == []
        assert m3.calls == []

    @pytest.mark.asyncio
    async def test_failing_candidate_falls_through(self, make_request):
        m1 = FakeAdapter("p1", ["m1-"], fail=True)
        m2 = FakeAdapter("p2", ["m2-"], fail=True)
        m3 = FakeAdapter("p3", ["m3-"])
        router = ModelRouter(make_context([m1, m2, m3], chains={RoutingTier.ECO: ECO_CHAIN}))

        response = await router.route(make_request(), RoutingTier.ECO)

        assert response.model == "m3-base"
        assert m1.calls == ["m1-base"]
        assert m2.calls == ["m2-base"]

    @pytest.mark.asyncio
    async def test_first_registered_adapter_wins(self, make_request):
        first = FakeAdapter("first", ["m1-"])
        second = FakeAdapter("second", ["m1-"])
        router = ModelRouter(make_context([first, second], chains={RoutingTier.ECO: ECO_CHAIN}))

        response = await router.route(make_request(), RoutingTier.ECO)

        assert response.provider == "first"
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_matching_adapter_failure_does_not_try_other_adapters_for_same_model(
        self, make_request
    ):
        first = FakeAdapter("first", ["m1-"], fail=True)
        second = FakeAdapter("second", ["m1-"])
        router = ModelRouter(
            make_context([first, second], chains={RoutingTier.ECO: ["m1-base", "m1-alt"]})
        )

        response = await router.route(make_request(), RoutingTier.ECO)

        # Each candidate model is served by its first matching adapter only.
        assert response.provider == MOCK_PROVIDER
        assert first.calls == ["m1-base", "m1-alt"]
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_no_adapters_returns_placeholder(self, make_request):
        router = ModelRouter(make_context([]))

        response = await router.route(make_request("Hi"), RoutingTier.ECO)

        assert response.model == "gpt-3.5-turbo"
        assert "mock response" in response.content
        assert response.usage.prompt_tokens == 10
        assert response.usage.completion_tokens == 20
        assert response.usage.total_tokens == 30
        assert response.finish_reason == "stop"
        assert response.object == "chat.completion"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tier", list(RoutingTier))
    async def test_route_is_total_for_every_tier(self, make_request, tier):
        adapters = [FakeAdapter("down", ["gpt-", "claude-"], fail=True)]
        router = ModelRouter(make_context(adapters))

        response = await router.route(make_request(), tier)

        assert response.model == router.chain_for(tier).primary
        assert response.provider == MOCK_PROVIDER


class TestRouteStreaming:
    """Test streaming routing."""

    @pytest.mark.asyncio
    async def test_chunks_forwarded_in_order(self, make_request):
        m1 = FakeAdapter("p1", ["m1-"], chunks=["a", "b", "c"])
        router = ModelRouter(make_context([m1], chains={RoutingTier.ECO: ECO_CHAIN}))

        chunks = await _stream(router, make_request(), RoutingTier.ECO)

        assert [c.content for c in chunks] == ["a", "b", "c", ""]
        assert [c.finish_reason for c in chunks] == [None, None, None, "stop"]

    @pytest.mark.asyncio
    async def test_failure_before_first_chunk_falls_through(self, make_request):
        m1 = FakeAdapter("p1", ["m1-"], fail=True)
        m2 = FakeAdapter("p2", ["m2-"], chunks=["ok"])
        router = ModelRouter(make_context([m1, m2], chains={RoutingTier.ECO: ECO_CHAIN}))

        chunks = await _stream(router, make_request(), RoutingTier.ECO)

        assert [c.model for c in chunks] == ["m2-base", "m2-base"]
        assert m1.stream_calls == ["m1-base"]

    @pytest.mark.asyncio
    async def test_failure_after_chunks_falls_through(self, make_request):
        m1 = FakeAdapter("p1", ["m1-"], chunks=["a", "b", "c"], fail_after=2)
        m2 = FakeAdapter("p2", ["m2-"], chunks=["ok"])
        router = ModelRouter(make_context([m1, m2], chains={RoutingTier.ECO: ECO_CHAIN}))

        chunks = await _stream(router, make_request(), RoutingTier.ECO)

        assert m2.stream_calls == ["m2-base"]
        assert [c.content for c in chunks] == ["a", "b", "ok", ""]
        assert [c.finish_reason for c in chunks] == [None, None, None, "stop"]
        assert chunks[-1].model == "m2-base"

    @pytest.mark.asyncio
    async def test_interrupted_streams_end_in_placeholder(self, make_request):
        adapters = [
            FakeAdapter(f"p{i}", [f"m{i}-"], chunks=["x", "y"], fail_after=1) for i in (1, 2, 3)
        ]
        router = ModelRouter(make_context(adapters, chains={RoutingTier.ECO: ECO_CHAIN}))

        chunks = await _stream(router, make_request(), RoutingTier.ECO)

        assert [a.stream_calls for a in adapters] == [["m1-base"], ["m2-base"], ["m3-base"]]
        terminal = [c for c in chunks if c.finish_reason is not None]
        assert len(terminal) == 1
        assert chunks[-1] is terminal[0]
        assert chunks[-1].provider == MOCK_PROVIDER

    @pytest.mark.asyncio
    async def test_exhausted_chain_streams_placeholder(self, make_request):
        router = ModelRouter(make_context([]))

        chunks = await _stream(router, make_request("Hi"), RoutingTier.ECO)

        text = "This is a mock streaming response from gpt-3.5-turbo. Configure API keys to use real LLM providers."
        words = text.split(" ")
        assert len(chunks) == len(words) + 1
        assert [c.content for c in chunks[:-1]] == [word + " " for word in words]
        assert chunks[-1].content == ""
        assert chunks[-1].finish_reason == "stop"
        assert all(c.finish_reason is None for c in chunks[:-1])
        assert all(c.model == "gpt-3.5-turbo" for c in chunks)
        assert len({c.id for c in chunks}) == 1


class TestRouterIntrospection:
    def test_providers_and_models(self):
        on = FakeAdapter("on", ["gpt-"])
        off = FakeAdapter("off", ["claude-"], enabled=False)
        router = ModelRouter(make_context([on, off]))

        assert router.get_providers() == ["on"]
        assert router.provider_status() == {"on": True, "off": False}
        assert router.get_adapters() == [on, off]

    def test_chain_for(self):
        router = ModelRouter(make_context([]))
        assert router.chain_for(RoutingTier.PREMIUM).primary == "gpt-4o"
