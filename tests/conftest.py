"""
Shared fixtures.
"""

import pytest

from fakes import make_context
from model_router.models import ChatMessage, ChatRequest


@pytest.fixture
def make_request():
    """Factory for single-turn user requests."""

    def _make(content: str = "Hi", **kwargs) -> ChatRequest:
        return ChatRequest(messages=[ChatMessage(role="user", content=content)], **kwargs)

    return _make


@pytest.fixture
def context_factory():
    return make_context
