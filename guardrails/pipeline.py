"""
Guardrail pipeline - runs an ordered list of text filters.

Applied to every message of an inbound request and to the text of each
outbound response or streaming chunk.
"""

from typing import List, Optional

from common.logging import get_logger
from guardrails.interfaces import TextFilter
from model_router.models import ChatMessage, ChatRequest, ChatResponse

logger = get_logger(__name__)


class GuardrailPipeline:
    """
    Ordered filters applied one after another.

    An empty pipeline returns its input object unchanged. A rejection from
    any filter propagates as ContentRejectedError.
    """

    def __init__(self, filters: Optional[List[TextFilter]] = None):
        self._filters: List[TextFilter] = list(filters or [])

    @property
    def filters(self) -> List[TextFilter]:
        return self._filters.copy()

    def __bool__(self) -> bool:
        return bool(self._filters)

    def apply(self, text: str) -> str:
        for text_filter in self._filters:
            text = text_filter.apply(text)
        return text

    def apply_to_request(self, request: ChatRequest) -> ChatRequest:
        """Filter every message's content. Returns the same request if nothing changed."""
        if not self._filters:
            return request

        changed = False
        messages = []
        for msg in request.messages:
            filtered = self.apply(msg.content)
            if filtered != msg.content:
                changed = True
                msg = ChatMessage(role=msg.role, content=filtered, name=msg.name)
            messages.append(msg)

        if not changed:
            return request

        logger.info(
            "request_text_filtered",
            filters=[f.name for f in self._filters],
        )
        return request.with_messages(messages)

    def apply_to_response(self, response: ChatResponse) -> ChatResponse:
        """Filter the response text (a full message or one chunk's delta)."""
        if not self._filters:
            return response

        content = response.content
        if not content:
            return response

        filtered = self.apply(content)
        if filtered == content:
            return response
        return response.with_content(filtered)
