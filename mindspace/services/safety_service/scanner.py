"""Signal scorer - keyword layer of the crisis screen.

Scans normalized user text against the risk lexicon and reports one
typed Signal per matched category. All scanning happens BEFORE the
responder sees any message.

Properties:
- Pure: no I/O, no shared mutable state
- Deterministic: same text and lexicon, same signals
- Bounded: at most one signal per category (first phrase wins)
"""
import logging
import re
from typing import List, Mapping, Optional, Tuple

from mindspace.shared.models import RiskCategory, Signal
from .config import LEXICON, LexiconEntry

logger = logging.getLogger(__name__)


class SignalScorer:
    """Lexicon-driven crisis signal detector.

    Each category's phrases are compiled once into word-bounded regexes
    and tested in lexicon order against lowercased text.
    """

    def __init__(self, lexicon: Optional[Mapping[RiskCategory, LexiconEntry]] = None):
        """Initialize scorer with a lexicon.

        Args:
            lexicon: Category to trigger-phrase table (defaults to LEXICON)
        """
        self.lexicon = lexicon if lexicon is not None else LEXICON

        # Pre-compile regex patterns for performance
        self._patterns: List[Tuple[RiskCategory, float, List[re.Pattern]]] = [
            (category, entry.base_confidence, self._compile_patterns(entry.phrases))
            for category, entry in self.lexicon.items()
        ]

        logger.info(
            "SIGNAL_SCORER_INITIALIZED",
            extra={
                "category_count": len(self._patterns),
                "phrase_count": sum(len(e.phrases) for e in self.lexicon.values()),
            }
        )

    def _compile_patterns(self, phrases: Tuple[str, ...]) -> List[re.Pattern]:
        """Compile phrases into regex patterns with word boundaries.

        Word boundaries prevent partial matches, e.g. "od" won't
        match "good" and "stab" won't match "stable".
        """
        return [re.compile(rf"\b{re.escape(phrase.lower())}\b") for phrase in phrases]

    @staticmethod
    def normalize(text: str) -> str:
        """Lowercase only; no stemming, so spans map onto the input."""
        return text.lower()

    def scan(self, text: str) -> Tuple[Signal, ...]:
        """Scan text for crisis signals.

        Args:
            text: Raw user text

        Returns:
            Signals in lexicon category order. Empty or whitespace-only
            text yields an empty tuple.
        """
        if not text or not text.strip():
            return ()

        normalized = self.normalize(text)
        signals = []

        for category, confidence, patterns in self._patterns:
            match = self._first_match(normalized, patterns)
            if match is None:
                continue
            signals.append(Signal(
                category=category,
                confidence=confidence,
                span=(match.start(), match.end()),
            ))

        return tuple(signals)

    def _first_match(
        self,
        text: str,
        patterns: List[re.Pattern],
    ) -> Optional[re.Match]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return match
        return None
