"""
Static model catalog served by GET /v1/models.

The listing is fixed; it is not derived from the router's chains or from
which providers happen to be enabled.
"""

from typing import List, Tuple

from gateway.models import ModelCard, ModelList

MODEL_CATALOG: List[Tuple[str, str]] = [
    ("gpt-4o", "openai"),
    ("gpt-4o-mini", "openai"),
    ("gpt-3.5-turbo", "openai"),
    ("claude-3-5-sonnet-20241022", "anthropic"),
    ("claude-3-sonnet-20240229", "anthropic"),
    ("claude-3-haiku-20240307", "anthropic"),
]


def list_models() -> ModelList:
    return ModelList(data=[ModelCard(id=model_id, owned_by=owner) for model_id, owner in MODEL_CATALOG])
