"""Response composer: the safety-first reply pipeline.

Every user turn is classified BEFORE the responder is considered.
A triggered classification is a hard override: the responder is never
invoked and the reply is fixed safety text. Otherwise the responder is
called under a timeout, and any failure becomes a fixed degraded reply.

Stages:
    Start -> SafetyOverride                  (classification triggered)
    Start -> Generate -> Delivered | Degraded

No exception escapes respond() for a deployed persona.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from mindspace.shared.models import (
    Classification,
    Conversation,
    ConversationTurn,
    EnrichmentFragment,
    PersonaId,
    TurnRole,
)
from mindspace.shared.utils import hash_text_for_audit
from mindspace.services.llm_service import BaseResponder
from mindspace.services.safety_service import CrisisClassifier, safety_message
from .knowledge import KnowledgeTable
from .personas import Persona, PersonaPromptBuilder, get_persona
from .topics import TopicMatcher

logger = logging.getLogger(__name__)


DEGRADED_TEXT = (
    "I'm having trouble processing your message right now. "
    "Could you try again in a moment?"
)


class ResponseOutcome(Enum):
    """Terminal state of one respond() call."""
    DELIVERED = "delivered"
    SAFETY_OVERRIDE = "safety_override"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class ComposedResponse:
    """Fully formed reply for one user turn."""
    outcome: ResponseOutcome
    text: str
    classification: Classification
    persona: PersonaId
    enrichment: Optional[EnrichmentFragment] = None
    # Why a reply was degraded or overridden; None when delivered
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Outbound response shape."""
        body = {
            "text": self.text,
            "classification": self.classification.to_dict(),
            "outcome": self.outcome.value,
        }
        if self.enrichment is not None:
            body["enrichment"] = self.enrichment.to_dict()
        return body

    def assistant_turn(self) -> ConversationTurn:
        return ConversationTurn(
            role=TurnRole.ASSISTANT,
            text=self.text,
            persona=self.persona,
            enrichment=self.enrichment,
        )


class ResponseComposer:
    """Runs classification, then either the safety override or generation."""

    def __init__(
        self,
        classifier: CrisisClassifier,
        responder: BaseResponder,
        prompt_builder: Optional[PersonaPromptBuilder] = None,
        topic_matcher: Optional[TopicMatcher] = None,
        knowledge: Optional[KnowledgeTable] = None,
        responder_timeout_seconds: float = 30.0,
        enrichment_enabled: bool = True,
    ):
        """Initialize composer.

        Args:
            classifier: Crisis classifier (runs on every turn)
            responder: Generative backend
            prompt_builder: Persona prompt builder (history window)
            topic_matcher: Topic tagger for enrichment
            knowledge: Enrichment fragment table
            responder_timeout_seconds: Responder budget per call
            enrichment_enabled: Attach fragments to delivered replies
        """
        self.classifier = classifier
        self.responder = responder
        self.prompt_builder = prompt_builder or PersonaPromptBuilder()
        self.topic_matcher = topic_matcher or TopicMatcher()
        self.knowledge = knowledge or KnowledgeTable()
        self.responder_timeout_seconds = responder_timeout_seconds
        self.enrichment_enabled = enrichment_enabled

    async def respond(
        self,
        conversation: Conversation,
        persona: Union[PersonaId, str],
        user_text: str,
    ) -> ComposedResponse:
        """Compose the reply to one user turn.

        Args:
            conversation: Snapshot of the conversation before this turn
            persona: Persona to answer as
            user_text: The new user turn

        Returns:
            ComposedResponse in one of the three terminal outcomes

        Raises:
            UnknownPersona: If persona is not deployed
        """
        resolved = get_persona(persona)
        classification = await self._classify(user_text)

        if classification.triggered:
            return self._safety_override(resolved, classification)

        return await self._generate(conversation, resolved, user_text, classification)

    async def _classify(self, user_text: str) -> Classification:
        try:
            return await self.classifier.assess(user_text)
        except Exception as e:
            # Never fail open: a broken classifier means assume risk
            logger.error(
                "CLASSIFY_ERROR",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "text_hash": hash_text_for_audit(user_text),
                    "action": "DEFAULTING_TO_TRIGGERED",
                }
            )
            return Classification(triggered=True, score=1.0)

    def _safety_override(
        self,
        persona: Persona,
        classification: Classification,
    ) -> ComposedResponse:
        logger.critical(
            "SAFETY_OVERRIDE",
            extra={
                "persona": persona.persona_id.value,
                "score": classification.score,
                "categories": [c.value for c in classification.categories],
                "responder_bypassed": True,
            }
        )
        return ComposedResponse(
            outcome=ResponseOutcome.SAFETY_OVERRIDE,
            text=safety_message(persona.name),
            classification=classification,
            persona=persona.persona_id,
            reason="crisis_detected",
        )

    async def _generate(
        self,
        conversation: Conversation,
        persona: Persona,
        user_text: str,
        classification: Classification,
    ) -> ComposedResponse:
        enrichment = None
        if self.enrichment_enabled and persona.enrichment:
            topics = self.topic_matcher.extract(user_text)
            enrichment = self.knowledge.lookup(topics)

        context = self.prompt_builder.build(persona.persona_id, conversation.turns, user_text)

        try:
            reply = await asyncio.wait_for(
                self.responder.generate(context),
                timeout=self.responder_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return self._degraded(persona, classification, "responder_timeout")
        except Exception as e:
            return self._degraded(persona, classification, "responder_error", e)

        text = getattr(reply, "text", None)
        if not isinstance(text, str) or not text.strip():
            return self._degraded(persona, classification, "empty_reply")

        logger.info(
            "RESPONSE_DELIVERED",
            extra={
                "persona": persona.persona_id.value,
                "prompt_turns": len(context.turns),
                "enriched": enrichment is not None,
                "score": classification.score,
            }
        )

        return ComposedResponse(
            outcome=ResponseOutcome.DELIVERED,
            text=text,
            classification=classification,
            persona=persona.persona_id,
            enrichment=enrichment,
        )

    def _degraded(
        self,
        persona: Persona,
        classification: Classification,
        reason: str,
        error: Optional[Exception] = None,
    ) -> ComposedResponse:
        logger.warning(
            "RESPONDER_FAILED",
            extra={
                "persona": persona.persona_id.value,
                "reason": reason,
                "error": str(error) if error else None,
                "error_type": type(error).__name__ if error else None,
                "timeout_seconds": self.responder_timeout_seconds,
            }
        )
        return ComposedResponse(
            outcome=ResponseOutcome.DEGRADED,
            text=DEGRADED_TEXT,
            classification=classification,
            persona=persona.persona_id,
            reason=reason,
        )
