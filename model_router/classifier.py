"""
Difficulty classification: maps a chat request to a routing tier.

Classification looks only at the last user utterance. It is a pure
function of the request and never fails.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from common.logging import get_logger
from model_router.config import ClassifierConfig
from model_router.models import ChatRequest, RoutingTier

logger = get_logger(__name__)


class TierClassifier(ABC):
    """Contract for anything that assigns a routing tier to a request."""

    @abstractmethod
    def classify(self, request: ChatRequest) -> RoutingTier:
        """Return the tier for this request. Must not raise."""
        pass


class HeuristicClassifier(TierClassifier):
    """
    Keyword and length heuristic.

    Checks run in a fixed order:
    1. longer than premium_length_threshold, or contains a premium keyword -> PREMIUM
    2. shorter than eco_length_threshold and contains no eco exclusion -> ECO
    3. otherwise -> BALANCED

    The PREMIUM check comes first, so a short prompt containing "refactor"
    is still PREMIUM.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self._config = config or ClassifierConfig()
        self._premium_keywords = tuple(k.lower() for k in self._config.premium_keywords)
        self._eco_exclusions = tuple(k.lower() for k in self._config.eco_exclusions)

    def classify(self, request: ChatRequest) -> RoutingTier:
        return self.classify_text(request.last_user_message)

    def classify_text(self, prompt: str) -> RoutingTier:
        length = len(prompt)
        lowered = prompt.lower()

        if length > self._config.premium_length_threshold or any(
            keyword in lowered for keyword in self._premium_keywords
        ):
            logger.debug("request_classified", tier=RoutingTier.PREMIUM.value, prompt_length=length)
            return RoutingTier.PREMIUM

        if length < self._config.eco_length_threshold and not any(
            word in lowered for word in self._eco_exclusions
        ):
            logger.debug("request_classified", tier=RoutingTier.ECO.value, prompt_length=length)
            return RoutingTier.ECO

        logger.debug("request_classified", tier=RoutingTier.BALANCED.value, prompt_length=length)
        return RoutingTier.BALANCED


class ScoredClassifier(TierClassifier):
    """
    Classifier driven by a pluggable scoring function.

    The score of the last user utterance is compared against two
    thresholds. If scoring raises, the heuristic decides instead, so
    classify() stays total.

    Args:
        score_fn: Maps prompt text to a difficulty score
        balanced_threshold: Minimum score for BALANCED
        premium_threshold: Minimum score for PREMIUM
        fallback: Classifier used when score_fn fails
    """

    def __init__(
        self,
        score_fn: Callable[[str], float],
        balanced_threshold: float = 0.33,
        premium_threshold: float = 0.66,
        fallback: Optional[HeuristicClassifier] = None,
    ):
        if balanced_threshold > premium_threshold:
            raise ValueError("balanced_threshold must not exceed premium_threshold")
        self._score_fn = score_fn
        self._balanced_threshold = balanced_threshold
        self._premium_threshold = premium_threshold
        self._fallback = fallback or HeuristicClassifier()

    def classify(self, request: ChatRequest) -> RoutingTier:
        prompt = request.last_user_message
        try:
            score = float(self._score_fn(prompt))
        except Exception as e:
            logger.warning(
                "classifier_scoring_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback.classify_text(prompt)

        if score >= self._premium_threshold:
            return RoutingTier.PREMIUM
        if score >= self._balanced_threshold:
            return RoutingTier.BALANCED
        return RoutingTier.ECO
