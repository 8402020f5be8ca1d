"""Personas and prompt construction.

Each persona is a fixed system instruction plus the shared response
guidelines. PersonaPromptBuilder turns stored history into the
responder's turn vocabulary, keeping only the most recent turns.
"""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Sequence, Union

from mindspace.shared.errors import UnknownPersona
from mindspace.shared.models import (
    ConversationTurn,
    PersonaId,
    PromptContext,
    PromptTurn,
    TurnRole,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Persona:
    """A deploy-time persona definition."""
    persona_id: PersonaId
    name: str
    description: str
    style: str
    instruction: str
    # Whether delivered replies may carry a knowledge-table fragment
    enrichment: bool = False

    def to_dict(self):
        return {
            "id": self.persona_id.value,
            "name": self.name,
            "description": self.description,
            "style": self.style,
        }


RESPONSE_GUIDELINES = (
    "Guidelines:\n"
    "- Keep responses under 150 words.\n"
    "- Use plain language suitable for ages 13-21.\n"
    "- Offer 1-3 actionable next steps.\n"
    "- If crisis risk is present, prioritize safety resources and encourage seeking help."
)

PERSONAS: Mapping[PersonaId, Persona] = MappingProxyType({
    PersonaId.ARJUNA: Persona(
        persona_id=PersonaId.ARJUNA,
        name="Arjuna",
        description="A compassionate peer mentor inspired by the Bhagavad Gita",
        style="supportive+practical",
        instruction=(
            "You are Arjuna, a compassionate peer mentor inspired by the Bhagavad Gita. "
            "Speak in supportive, relatable, youth-friendly language. Use brief references "
            "to values like courage, duty to self-care, and balance. Offer practical steps, "
            "reflection prompts, and coping strategies. Avoid religious preaching; keep "
            "inclusive and non-judgmental. Never provide medical diagnosis. Encourage "
            "reaching out to trusted adults and professionals when needed."
        ),
        enrichment=True,
    ),
    PersonaId.MAYA: Persona(
        persona_id=PersonaId.MAYA,
        name="Maya",
        description="An empathetic coach with a calm, mindful tone",
        style="empathetic+mindful",
        instruction=(
            "You are Maya, an empathetic coach with a calm, mindful tone. Use grounding, "
            "breathing prompts, and journaling cues. Validate feelings and normalize "
            "struggles. Offer 1-2 gentle suggestions at a time. Avoid diagnostic claims. "
            "Encourage seeking help when risk is present."
        ),
    ),
})

# Stored role -> responder role
PROMPT_ROLES: Mapping[TurnRole, str] = MappingProxyType({
    TurnRole.USER: "user",
    TurnRole.ASSISTANT: "model",
})


def get_persona(persona: Union[PersonaId, str]) -> Persona:
    """Resolve a persona id (enum or raw string).

    Raises:
        UnknownPersona: If the id is not a deployed persona
    """
    if not isinstance(persona, PersonaId):
        try:
            persona = PersonaId(persona)
        except ValueError:
            raise UnknownPersona(persona) from None

    try:
        return PERSONAS[persona]
    except KeyError:
        raise UnknownPersona(persona.value) from None


def system_instruction(persona: Persona) -> str:
    return f"{persona.instruction}\n{RESPONSE_GUIDELINES}"


class PersonaPromptBuilder:
    """Builds the PromptContext for one responder call."""

    def __init__(self, history_limit: int = 10):
        if history_limit < 0:
            raise ValueError(f"history_limit must be >= 0, got {history_limit}")
        self.history_limit = history_limit

    def build(
        self,
        persona: Union[PersonaId, str],
        history: Sequence[ConversationTurn],
        new_user_text: str,
    ) -> PromptContext:
        """Build a prompt context.

        Args:
            persona: Persona to speak as
            history: Prior turns, oldest first (not modified)
            new_user_text: The turn being answered

        Returns:
            PromptContext with at most history_limit prior turns

        Raises:
            UnknownPersona: If persona is not deployed
        """
        resolved = get_persona(persona)

        recent = history[-self.history_limit:] if self.history_limit else ()
        turns = tuple(
            PromptTurn(role=PROMPT_ROLES[turn.role], text=turn.text)
            for turn in recent
        )

        logger.debug(
            "PROMPT_BUILT",
            extra={
                "persona": resolved.persona_id.value,
                "history_turns": len(history),
                "prompt_turns": len(turns),
            }
        )

        return PromptContext(
            system_instruction=system_instruction(resolved),
            turns=turns,
            latest_user_text=new_user_text,
        )
