"""
Content moderation filter: rejects text containing a blocked term.
"""

from typing import Iterable, Optional

from common.logging import get_logger
from guardrails.exceptions import ContentRejectedError
from guardrails.interfaces import TextFilter

logger = get_logger(__name__)


class ContentModerationFilter(TextFilter):
    """
    Rejects text that contains any blocked term (case-insensitive substring).

    Text without a blocked term passes through unchanged.
    """

    def __init__(self, blocked_terms: Optional[Iterable[str]] = None):
        self._name = "content_moderation"
        self._blocked_terms = self._normalize(blocked_terms or [])

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def _normalize(terms: Iterable[str]) -> tuple:
        return tuple(term.strip().lower() for term in terms if term and term.strip())

    @property
    def blocked_terms(self) -> tuple:
        return self._blocked_terms

    def configure(self, config: dict) -> None:
        self._blocked_terms = self._normalize(config.get("blocked_terms", []))

    def apply(self, text: str) -> str:
        lowered = text.lower()
        for term in self._blocked_terms:
            if term in lowered:
                logger.warning("content_rejected", filter=self.name, term=term)
                raise ContentRejectedError(
                    "Content rejected by moderation filter", filter_name=self.name
                )
        return text
