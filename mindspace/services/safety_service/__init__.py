"""Safety Service: crisis signal detection and classification.

Every user turn passes through here BEFORE reaching the responder. A
triggered classification replaces the generated reply with fixed
safety text.

Components:
- config.py: Risk lexicon, category weights, thresholds, helpline text
- scanner.py: SignalScorer (lexicon matching)
- classifier.py: CrisisClassifier (weighted score + auxiliary opinion)
- moderation.py: OpenAI moderation auxiliary classifier
- crisis_publisher.py: Kinesis crisis event publishing
- handler.py: Flask HTTP endpoints (/health, /classify, /crisis/helplines)

Usage:
    from mindspace.services.safety_service import CrisisClassifier
    classifier = CrisisClassifier()
    result = classifier.classify("I feel hopeless and want to die")
"""

from .scanner import SignalScorer
from .classifier import AuxiliaryClassifier, AuxiliaryVerdict, CrisisClassifier
from .config import (
    CATEGORY_WEIGHTS,
    HELPLINES,
    LEXICON,
    LexiconEntry,
    SafetyConfig,
    safety_message,
    safety_overlay,
)
from .crisis_publisher import CrisisEvent, CrisisEventPublisher

__all__ = [
    "SignalScorer",
    "AuxiliaryClassifier",
    "AuxiliaryVerdict",
    "CrisisClassifier",
    "CATEGORY_WEIGHTS",
    "HELPLINES",
    "LEXICON",
    "LexiconEntry",
    "SafetyConfig",
    "safety_message",
    "safety_overlay",
    "CrisisEvent",
    "CrisisEventPublisher",
]
