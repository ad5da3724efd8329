"""
Text filter interface definition.

Defines the contract that all guardrail filters implement.
"""

from abc import ABC, abstractmethod


class TextFilter(ABC):
    """
    Abstract base class for all guardrail filters.

    A filter maps text to text. It may rewrite the text (masking) or refuse
    it by raising ContentRejectedError. Filters are independent of each
    other and of the routing core.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return the unique name of this filter.

        Returns:
            Filter name (e.g., "pii_masking", "content_moderation")
        """
        pass

    @abstractmethod
    def apply(self, text: str) -> str:
        """
        Filter a piece of text.

        Args:
            text: Request or response text

        Returns:
            The text to pass on, possibly rewritten

        Raises:
            ContentRejectedError: If the text must not be processed
        """
        pass

    def configure(self, config: dict) -> None:
        """
        Configure the filter with settings from the config file.

        Override this if your filter needs configuration.
        """
        pass
