"""Keyword-based topic tagging for enrichment lookup."""
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

DEFAULT_TOPIC = "general-reflection"

# Tag order is the enrichment priority order.
TOPIC_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "anxiety": (
        "anxious", "anxiety", "worried", "worry", "nervous", "panic", "stress", "exams",
    ),
    "self-compassion": (
        "hate myself", "not good enough", "worthless", "blame myself", "useless",
        "ashamed",
    ),
    "resilience": (
        "give up", "giving up", "failed", "failure", "setback", "overwhelmed",
        "struggling",
    ),
    "meditation": (
        "meditat", "restless", "calm down", "can't focus", "cannot focus",
        "breathe", "racing thoughts",
    ),
    "purpose": (
        "purpose", "meaning", "career", "my future", "what should i do", "duty",
    ),
    "growth": (
        "improve", "habit", "discipline", "better person", "grow",
    ),
})


class TopicMatcher:
    """Tags text with discussion topics by keyword containment."""

    def __init__(
        self,
        keywords: Optional[Mapping[str, Tuple[str, ...]]] = None,
        default_topic: str = DEFAULT_TOPIC,
    ):
        self.keywords = keywords if keywords is not None else TOPIC_KEYWORDS
        self.default_topic = default_topic

    @property
    def priority(self) -> Tuple[str, ...]:
        return tuple(self.keywords)

    def extract(self, text: str) -> FrozenSet[str]:
        """Return matching topic tags; never empty."""
        lowered = (text or "").lower()
        tags = frozenset(
            tag for tag, words in self.keywords.items()
            if any(word in lowered for word in words)
        )
        return tags or frozenset({self.default_topic})
