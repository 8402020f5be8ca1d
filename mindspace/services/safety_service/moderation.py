"""OpenAI moderation endpoint as an auxiliary crisis classifier.

Maps the moderation model's self-harm and violence categories onto
RiskCategory. The verdict only ever adds to the lexicon result.
"""
import logging
from typing import Dict, Optional

from mindspace.shared.errors import ClassifierUnavailable
from mindspace.shared.models import RiskCategory, Signal
from .classifier import AuxiliaryClassifier, AuxiliaryVerdict

logger = logging.getLogger(__name__)


# moderation attribute -> risk category
MODERATION_CATEGORY_MAP: Dict[str, RiskCategory] = {
    "self_harm_intent": RiskCategory.IDEATION,
    "self_harm": RiskCategory.SELF_HARM,
    "self_harm_instructions": RiskCategory.SELF_HARM,
    "violence": RiskCategory.VIOLENCE,
}


class ModerationClassifier(AuxiliaryClassifier):
    """Auxiliary classifier backed by the OpenAI moderation API."""

    name = "openai_moderation"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "omni-moderation-latest",
        min_confidence: float = 0.5,
        client=None,
    ):
        """Initialize moderation classifier.

        Args:
            api_key: OpenAI API key (ignored when client is given)
            model: Moderation model name
            min_confidence: Category score needed to emit a signal
            client: Pre-built AsyncOpenAI client
        """
        if client is None:
            if not api_key:
                raise ValueError("OpenAI API key required")
            import openai
            client = openai.AsyncOpenAI(api_key=api_key)

        self.client = client
        self.model = model
        self.min_confidence = min_confidence

    async def classify(self, text: str) -> AuxiliaryVerdict:
        """Classify text with the moderation endpoint.

        Raises:
            ClassifierUnavailable: On any API or response-shape failure
        """
        try:
            response = await self.client.moderations.create(
                model=self.model,
                input=text,
            )
            result = response.results[0]
        except Exception as e:
            logger.error(
                "MODERATION_REQUEST_FAILED",
                extra={"model": self.model, "error": str(e)}
            )
            raise ClassifierUnavailable(f"Moderation request failed: {e}") from e

        best: Dict[RiskCategory, float] = {}
        flagged = False
        for attribute, category in MODERATION_CATEGORY_MAP.items():
            score = float(getattr(result.category_scores, attribute, 0.0) or 0.0)
            flagged = flagged or bool(getattr(result.categories, attribute, False))
            best[category] = max(best.get(category, 0.0), min(1.0, score))

        # Category order follows RiskCategory declaration order
        signals = tuple(
            Signal(category=category, confidence=best[category])
            for category in RiskCategory
            if best.get(category, 0.0) >= self.min_confidence
        )

        return AuxiliaryVerdict(
            triggered=flagged and bool(signals),
            score=max(best.values(), default=0.0),
            signals=signals,
            source=self.name,
        )
