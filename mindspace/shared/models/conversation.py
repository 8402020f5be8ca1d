"""Conversation domain models.

A Conversation is the single, append-only thread a user has with the
assistant. Turns are never edited; an edit is a new turn.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .risk import Classification


class TurnRole(Enum):
    """Who authored a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


class PersonaId(Enum):
    """Deploy-time persona identifiers."""
    ARJUNA = "arjuna"
    MAYA = "maya"


@dataclass(frozen=True)
class EnrichmentFragment:
    """Supplementary reference attached to a non-crisis reply."""
    source_text: str
    citation: str
    translation: str
    explanation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "sourceText": self.source_text,
            "citation": self.citation,
            "translation": self.translation,
        }
        if self.explanation:
            data["explanation"] = self.explanation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrichmentFragment":
        return cls(
            source_text=data["sourceText"],
            citation=data["citation"],
            translation=data["translation"],
            explanation=data.get("explanation"),
        )


@dataclass(frozen=True)
class ConversationTurn:
    """One message in a conversation. Immutable after append."""
    role: TurnRole
    text: str
    persona: Optional[PersonaId] = None
    classification: Optional[Classification] = None
    enrichment: Optional[EnrichmentFragment] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "text": self.text,
            "persona": self.persona.value if self.persona else None,
            "classification": (
                self.classification.to_dict() if self.classification else None
            ),
            "enrichment": self.enrichment.to_dict() if self.enrichment else None,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        """Rebuild a turn from its stored dict form."""
        persona = data.get("persona")
        classification = data.get("classification")
        enrichment = data.get("enrichment")
        return cls(
            role=TurnRole(data["role"]),
            text=data["text"],
            persona=PersonaId(persona) if persona else None,
            classification=(
                Classification.from_dict(classification) if classification else None
            ),
            enrichment=EnrichmentFragment.from_dict(enrichment) if enrichment else None,
            created_at=datetime.fromisoformat(data["createdAt"]),
        )


@dataclass(frozen=True)
class Conversation:
    """A user's single conversation thread.

    Snapshots are immutable; appending produces a new snapshot so readers
    holding an older one never observe a partially written history.
    """
    owner_id: str
    turns: Tuple[ConversationTurn, ...] = field(default_factory=tuple)
    last_active: datetime = field(default_factory=datetime.utcnow)

    def with_turn(self, turn: ConversationTurn) -> "Conversation":
        return replace(self, turns=self.turns + (turn,))

    def touched(self, timestamp: datetime) -> "Conversation":
        return replace(self, last_active=timestamp)

    def __len__(self) -> int:
        return len(self.turns)


@dataclass(frozen=True)
class PromptTurn:
    """A history turn in the responder's role vocabulary ("user" | "model")."""
    role: str
    text: str


@dataclass(frozen=True)
class PromptContext:
    """Everything a responder needs for one generation call."""
    system_instruction: str
    turns: Tuple[PromptTurn, ...]
    latest_user_text: str
