"""
Guardrails module - request and response text filters
"""

from guardrails.exceptions import ContentRejectedError, GuardrailError
from guardrails.interfaces import TextFilter
from guardrails.moderation import ContentModerationFilter
from guardrails.pii_masking import PIIMaskingFilter
from guardrails.pipeline import GuardrailPipeline

__all__ = [
    "TextFilter",
    "PIIMaskingFilter",
    "ContentModerationFilter",
    "GuardrailPipeline",
    "GuardrailError",
    "ContentRejectedError",
]
