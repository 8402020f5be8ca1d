"""Shared domain models for the MindSpace platform."""
from .risk import (
    RiskCategory,
    Signal,
    Classification,
)
from .conversation import (
    TurnRole,
    PersonaId,
    EnrichmentFragment,
    ConversationTurn,
    Conversation,
    PromptTurn,
    PromptContext,
)

__all__ = [
    "RiskCategory",
    "Signal",
    "Classification",
    "TurnRole",
    "PersonaId",
    "EnrichmentFragment",
    "ConversationTurn",
    "Conversation",
    "PromptTurn",
    "PromptContext",
]
