"""Chat Service: persona chat behind the crisis screen.

Pipeline per user turn:
    CrisisClassifier -> {SafetyOverride}
                     -> TopicMatcher -> PersonaPromptBuilder -> Responder
                        -> {Delivered | Degraded}

Components:
- personas.py: Persona definitions and PersonaPromptBuilder
- topics.py: TopicMatcher (keyword topic tags)
- knowledge.py: KnowledgeTable (enrichment fragments by topic)
- composer.py: ResponseComposer and ComposedResponse
- conversation_store.py: In-memory and PostgreSQL conversation stores
- service.py: ChatService (validation, per-owner ordering, persistence)
- handler.py: FastAPI app factory
- app.py: Environment wiring and server entry point
"""

from .composer import DEGRADED_TEXT, ComposedResponse, ResponseComposer, ResponseOutcome
from .config import ChatServiceConfig
from .conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
    PostgresConversationStore,
)
from .knowledge import KnowledgeTable
from .personas import PERSONAS, Persona, PersonaPromptBuilder, get_persona
from .service import ChatService
from .topics import DEFAULT_TOPIC, TopicMatcher

__all__ = [
    "DEGRADED_TEXT",
    "ComposedResponse",
    "ResponseComposer",
    "ResponseOutcome",
    "ChatServiceConfig",
    "ConversationStore",
    "InMemoryConversationStore",
    "PostgresConversationStore",
    "KnowledgeTable",
    "PERSONAS",
    "Persona",
    "PersonaPromptBuilder",
    "get_persona",
    "ChatService",
    "DEFAULT_TOPIC",
    "TopicMatcher",
]
