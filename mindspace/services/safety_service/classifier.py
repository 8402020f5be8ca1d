"""Crisis classifier - aggregates signals into a single crisis decision.

Scoring:
- Each matched category contributes its weight once (ideation 0.4,
  every other category 0.2)
- Score is the clamped sum of contributions, so adding signals can
  never lower it
- A turn is triggered when score >= crisis_threshold (default 0.7)

An auxiliary (model-based) classifier may be wired in as a second
opinion. It can only raise the score. If it fails or times out the
heuristic result stands; if it was the only signal source, the turn is
treated as triggered.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

from mindspace.shared.models import Classification, Signal
from mindspace.shared.utils import hash_text_for_audit
from .config import SafetyConfig
from .scanner import SignalScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuxiliaryVerdict:
    """Second-opinion result from an auxiliary classifier."""
    triggered: bool
    score: float
    signals: Tuple[Signal, ...] = field(default_factory=tuple)
    source: str = "auxiliary"

    def __post_init__(self):
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Score must be 0.0-1.0, got {self.score}")


class AuxiliaryClassifier(ABC):
    """Interface for model-based crisis classifiers."""

    name: str = "auxiliary"

    @abstractmethod
    async def classify(self, text: str) -> AuxiliaryVerdict:
        """Classify text.

        Raises:
            ClassifierUnavailable: If the backing model cannot answer
        """
        pass


class CrisisClassifier:
    """Turns user text into a Classification.

    The heuristic path (classify) is synchronous and cannot fail for
    string input. The assess path adds the optional auxiliary classifier
    and is the one the response pipeline uses.
    """

    def __init__(
        self,
        config: Optional[SafetyConfig] = None,
        scorer: Optional[SignalScorer] = None,
        auxiliary: Optional[AuxiliaryClassifier] = None,
    ):
        """Initialize classifier.

        Args:
            config: Threshold, weights and auxiliary timeout
            scorer: Lexicon signal scorer
            auxiliary: Optional second-opinion classifier
        """
        self.config = config or SafetyConfig()
        self.scorer = scorer or SignalScorer()
        self.auxiliary = auxiliary

        if not self.config.lexicon_enabled and auxiliary is None:
            raise ValueError("Lexicon disabled without an auxiliary classifier")

        logger.info(
            "CRISIS_CLASSIFIER_INITIALIZED",
            extra={
                "threshold": self.config.crisis_threshold,
                "lexicon_enabled": self.config.lexicon_enabled,
                "auxiliary": auxiliary.name if auxiliary else None,
                "pattern_version": self.config.pattern_version,
            }
        )

    @property
    def threshold(self) -> float:
        return self.config.crisis_threshold

    def score_signals(self, signals: Tuple[Signal, ...]) -> float:
        """Clamped sum of category weights, one contribution per category."""
        categories = {signal.category for signal in signals}
        total = sum(self.config.category_weights[c] for c in categories)
        return round(min(1.0, max(0.0, total)), 4)

    def classify(self, text: str) -> Classification:
        """Heuristic-only classification.

        Args:
            text: Raw user text

        Returns:
            Classification with triggered flag, score and signals
        """
        if not self.config.lexicon_enabled:
            return Classification(triggered=False, score=0.0)

        signals = self.scorer.scan(text)
        score = self.score_signals(signals)
        return Classification(
            triggered=score >= self.threshold,
            score=score,
            signals=signals,
        )

    async def assess(self, text: str) -> Classification:
        """Classify with the auxiliary classifier as a second opinion.

        Never raises for string input.
        """
        heuristic = self.classify(text)
        result = heuristic

        if self.auxiliary is not None:
            try:
                verdict = await asyncio.wait_for(
                    self.auxiliary.classify(text),
                    timeout=self.config.aux_timeout_seconds,
                )
                result = self._combine(heuristic, verdict)
            except Exception as e:
                result = self._auxiliary_fallback(heuristic, e)

        self._log_classification(text, result)
        return result

    def _combine(
        self,
        heuristic: Classification,
        verdict: AuxiliaryVerdict,
    ) -> Classification:
        """Merge heuristic and auxiliary results without lowering either."""
        seen = set(heuristic.categories)
        extra = tuple(s for s in verdict.signals if s.category not in seen)
        score = max(heuristic.score, verdict.score)
        return Classification(
            triggered=heuristic.triggered or verdict.triggered or score >= self.threshold,
            score=score,
            signals=heuristic.signals + extra,
        )

    def _auxiliary_fallback(
        self,
        heuristic: Classification,
        error: Exception,
    ) -> Classification:
        """Heuristic result, or a forced trigger when nothing else ran."""
        sole_source = not self.config.lexicon_enabled

        logger.warning(
            "CLASSIFIER_UNAVAILABLE",
            extra={
                "auxiliary": self.auxiliary.name,
                "error": str(error),
                "error_type": type(error).__name__,
                "action": "FORCED_TRIGGER" if sole_source else "HEURISTIC_FALLBACK",
            }
        )

        if sole_source:
            return Classification(triggered=True, score=1.0)
        return heuristic

    def _log_classification(self, text: str, result: Classification) -> None:
        extra = {
            "text_hash": hash_text_for_audit(text),
            "text_length": len(text),
            "triggered": result.triggered,
            "score": result.score,
            "categories": [c.value for c in result.categories],
        }
        if result.triggered:
            logger.critical("CRISIS_CLASSIFIED", extra=extra)
        else:
            logger.info("CRISIS_CLASSIFIED", extra=extra)
