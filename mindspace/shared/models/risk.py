"""Risk category and crisis classification domain models.

This file defines the core enums and data structures for crisis screening.
Every user turn is reduced to a Classification before any model sees it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RiskCategory(Enum):
    """Closed set of crisis risk categories.

    Adding a member requires a lexicon entry and a weight table row in
    safety_service.config.
    """
    IDEATION = "ideation"       # Direct suicidal language (high weight)
    SELF_HARM = "self_harm"     # Non-suicidal self injury
    VIOLENCE = "violence"       # Harm directed at others
    ABUSE = "abuse"             # Disclosure of being abused
    MEDICAL = "medical"         # Overdose, poisoning, medical emergency


@dataclass(frozen=True)
class Signal:
    """A single detected risk indicator.

    Immutable - signals are produced fresh per classification call and
    only ever live inside a Classification.
    """
    category: RiskCategory
    confidence: float                       # 0.0 to 1.0
    span: Optional[Tuple[int, int]] = None  # [start, end) in normalized text

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")
        if self.span is not None and not 0 <= self.span[0] <= self.span[1]:
            raise ValueError(f"Invalid span {self.span}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.category.value,
            "confidence": round(self.confidence, 3),
            "span": list(self.span) if self.span is not None else None,
        }


@dataclass(frozen=True)
class Classification:
    """Aggregated crisis decision for one user turn.

    Created once per turn by the CrisisClassifier. A triggered
    classification is a hard override: no generated text may be
    returned for that turn.
    """
    triggered: bool
    score: float
    signals: Tuple[Signal, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Score must be 0.0-1.0, got {self.score}")

    @property
    def categories(self) -> Tuple[RiskCategory, ...]:
        return tuple(signal.category for signal in self.signals)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the outbound classification shape."""
        return {
            "triggered": self.triggered,
            "score": round(self.score, 3),
            "reasons": [signal.to_dict() for signal in self.signals],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Classification":
        signals = tuple(
            Signal(
                category=RiskCategory(reason["type"]),
                confidence=reason["confidence"],
                span=tuple(reason["span"]) if reason.get("span") else None,
            )
            for reason in data.get("reasons", [])
        )
        return cls(
            triggered=data["triggered"],
            score=data["score"],
            signals=signals,
        )
