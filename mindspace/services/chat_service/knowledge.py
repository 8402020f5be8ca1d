"""Read-only knowledge table: Bhagavad Gita verses keyed by topic tag.

Fragments are selected, never generated. Lookup walks the topic
priority order and returns the first verse tagged with a matching topic.
"""
from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, Optional, Tuple

from mindspace.shared.models import EnrichmentFragment
from .topics import TOPIC_KEYWORDS


@dataclass(frozen=True)
class Verse:
    chapter: int
    verse: int
    sanskrit: str
    translation: str
    explanation: str
    tags: FrozenSet[str]

    @property
    def citation(self) -> str:
        return f"Bhagavad Gita Chapter {self.chapter}, Verse {self.verse}"

    def to_fragment(self) -> EnrichmentFragment:
        return EnrichmentFragment(
            source_text=self.sanskrit,
            citation=self.citation,
            translation=self.translation,
            explanation=self.explanation,
        )


VERSES: Tuple[Verse, ...] = (
    Verse(
        chapter=2,
        verse=14,
        sanskrit=(
            "मात्रास्पर्शास्तु कौन्तेय शीतोष्णसुखदुःखदाः।\n"
            "आगमापायिनोऽनित्यास्तांस्तितिक्षस्व भारत॥"
        ),
        translation=(
            "O son of Kunti, the nonpermanent appearance of happiness and distress, "
            "and their disappearance in due course, are like the appearance and "
            "disappearance of winter and summer seasons. They arise from sense "
            "perception, and one must learn to tolerate them without being disturbed."
        ),
        explanation=(
            "Just as seasons change, all emotions and sensations are temporary. "
            "Seeing that they pass helps build equanimity and mental strength."
        ),
        tags=frozenset({"resilience", "impermanence", "equanimity", "emotional-balance"}),
    ),
    Verse(
        chapter=2,
        verse=47,
        sanskrit=(
            "कर्मण्येवाधिकारस्ते मा फलेषु कदाचन।\n"
            "मा कर्मफलहेतुर्भूर्मा ते सङ्गोऽस्त्वकर्मणि॥"
        ),
        translation=(
            "You have a right to perform your prescribed duties, but you are not "
            "entitled to the fruits of your actions. Never consider yourself to be "
            "the cause of the results of your activities, nor be attached to inaction."
        ),
        explanation=(
            "Focusing on the effort in front of you, rather than on the outcome, "
            "eases anxiety about results and keeps you moving."
        ),
        tags=frozenset({"detachment", "purpose", "anxiety", "action", "mindfulness"}),
    ),
    Verse(
        chapter=6,
        verse=5,
        sanskrit=(
            "उद्धरेदात्मनात्मानं नात्मानमवसादयेत्।\n"
            "आत्मैव ह्यात्मनो बन्धुरात्मैव रिपुरात्मनः॥"
        ),
        translation=(
            "One must elevate oneself by one's own mind, not degrade oneself. The "
            "mind is the friend of the conditioned soul, and his enemy as well."
        ),
        explanation=(
            "Your mind can be your greatest ally or your harshest critic. Practicing "
            "self-compassion trains it to lift you up rather than pull you down."
        ),
        tags=frozenset({"self-compassion", "mental-health", "mindfulness", "positive-thinking"}),
    ),
    Verse(
        chapter=6,
        verse=27,
        sanskrit=(
            "प्रशान्तमनसं ह्येनं योगिनं सुखमुत्तमम्।\n"
            "उपैति शान्तरजसं ब्रह्मभूतमकल्मषम्॥"
        ),
        translation=(
            "The yogi whose mind is peaceful, whose passions are calmed, who is free "
            "from sin and has become one with the Ultimate, attains the highest bliss."
        ),
        explanation=(
            "Calming the mind through regular meditation brings inner peace and "
            "helps reduce anxiety."
        ),
        tags=frozenset({"meditation", "peace", "anxiety", "mindfulness"}),
    ),
    Verse(
        chapter=18,
        verse=37,
        sanskrit=(
            "यत्तदग्रे विषमिव परिणामेऽमृतोपमम्।\n"
            "तत्सुखं सात्त्विकं प्रोक्तमात्मबुद्धिप्रसादजम्॥"
        ),
        translation=(
            "That happiness which seems like poison at first but is like nectar in "
            "the end, which awakens one to self-realization, is said to be happiness "
            "in the mode of goodness."
        ),
        explanation=(
            "Growth is often uncomfortable at first. Habits that feel hard now can "
            "lead to lasting well-being."
        ),
        tags=frozenset({"growth", "resilience", "happiness", "self-development"}),
    ),
)


class KnowledgeTable:
    """Topic-tag lookup over a fixed verse list."""

    def __init__(
        self,
        verses: Iterable[Verse] = VERSES,
        priority: Iterable[str] = tuple(TOPIC_KEYWORDS),
    ):
        self.verses = tuple(verses)
        self.priority = tuple(priority)

    def lookup(self, topics: AbstractSet[str]) -> Optional[EnrichmentFragment]:
        """At most one fragment for the given topics, or None."""
        for tag in self.priority:
            if tag not in topics:
                continue
            for verse in self.verses:
                if tag in verse.tags:
                    return verse.to_fragment()
        return None
