"""LLM Service for MindSpace.

Generative backends that turn a persona-conditioned PromptContext into
assistant text. Safety screening happens before any responder is called
(see chat_service.composer).
"""

from .responder import (
    BaseResponder,
    HuggingFaceResponder,
    OpenAIResponder,
    ResponderConfig,
    ResponderProvider,
    ResponderReply,
    create_responder,
)

__version__ = "0.1.0"

__all__ = [
    "BaseResponder",
    "HuggingFaceResponder",
    "OpenAIResponder",
    "ResponderConfig",
    "ResponderProvider",
    "ResponderReply",
    "create_responder",
]
