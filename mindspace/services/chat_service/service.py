"""Chat orchestration: validation, per-owner ordering, persistence.

ChatService sits between the transport and the ResponseComposer. It
rejects malformed input before the classifier ever runs, holds one
asyncio.Lock per owner across read -> compose -> append so a
conversation's turns land in request acceptance order, and treats
storage as best effort: a PersistenceFailure is logged, the reply
still goes out.

Crisis events are published in background tasks; the safety reply is
returned without waiting for Kinesis. Call drain() at shutdown.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, Optional, Set, Tuple, Union

from mindspace.shared.errors import InvalidInput, PersistenceFailure
from mindspace.shared.models import (
    Conversation,
    ConversationTurn,
    PersonaId,
    TurnRole,
)
from mindspace.shared.utils import hash_pii
from mindspace.services.safety_service import CrisisEventPublisher
from .composer import ComposedResponse, ResponseComposer, ResponseOutcome
from .conversation_store import ConversationStore
from .personas import get_persona

logger = logging.getLogger(__name__)


class _OwnerLock:
    """A lock plus the number of requests holding or waiting on it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class ChatService:
    """Handles one inbound chat message end to end."""

    def __init__(
        self,
        composer: ResponseComposer,
        store: ConversationStore,
        crisis_publisher: Optional[CrisisEventPublisher] = None,
        max_message_length: int = 1000,
        pattern_version: str = "",
    ):
        """Initialize chat service.

        Args:
            composer: Reply pipeline
            store: Conversation persistence
            crisis_publisher: Kinesis publisher for triggered turns
            max_message_length: Inbound text bound in characters
            pattern_version: Lexicon version stamped on crisis events
        """
        self.composer = composer
        self.store = store
        self.crisis_publisher = crisis_publisher
        self.max_message_length = max_message_length
        self.pattern_version = pattern_version
        # Entries exist only while a request for that owner is in flight
        self._locks: Dict[str, _OwnerLock] = {}
        self._background: Set[asyncio.Task] = set()

    def validate(
        self,
        owner_id: str,
        persona: Union[PersonaId, str],
        text: str,
    ) -> Tuple[PersonaId, str]:
        """Reject requests that cannot be safely interpreted.

        Raises:
            InvalidInput: Missing owner, empty or oversized text
            UnknownPersona: Persona not deployed
        """
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise InvalidInput("Owner id required")
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("Message text required")
        if len(text) > self.max_message_length:
            raise InvalidInput(
                f"Message exceeds {self.max_message_length} characters"
            )
        return get_persona(persona).persona_id, text

    async def send_message(
        self,
        owner_id: str,
        persona: Union[PersonaId, str],
        text: str,
    ) -> ComposedResponse:
        """Validate, compose and persist one user turn.

        Raises:
            InvalidInput: See validate(); nothing else propagates
        """
        persona_id, text = self.validate(owner_id, persona, text)
        owner_hash = hash_pii(owner_id)

        async with self._owner_lock(owner_id):
            conversation = await self._load(owner_id, owner_hash)
            response = await self.composer.respond(conversation, persona_id, text)

            user_turn = ConversationTurn(
                role=TurnRole.USER,
                text=text,
                persona=persona_id,
                classification=response.classification,
            )
            await self._persist(owner_id, owner_hash, user_turn, response.assistant_turn())

        logger.info(
            "CHAT_MESSAGE_HANDLED",
            extra={
                "owner_id_hash": owner_hash,
                "persona": persona_id.value,
                "outcome": response.outcome.value,
                "reason": response.reason,
                "message_length": len(text),
            }
        )

        if response.outcome == ResponseOutcome.SAFETY_OVERRIDE:
            self._schedule_crisis_event(owner_hash, persona_id, response)

        return response

    async def history(self, owner_id: str) -> Conversation:
        """The owner's conversation; empty if they have never chatted.

        Raises:
            PersistenceFailure: If the store cannot be read
        """
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise InvalidInput("Owner id required")
        conversation = await self.store.get(owner_id)
        return conversation or Conversation(owner_id=owner_id)

    async def drain(self) -> None:
        """Wait for in-flight crisis event publishing to finish."""
        if self._background:
            await asyncio.gather(*self._background)

    @asynccontextmanager
    async def _owner_lock(self, owner_id: str):
        entry = self._locks.get(owner_id)
        if entry is None:
            entry = self._locks[owner_id] = _OwnerLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[owner_id]

    async def _load(self, owner_id: str, owner_hash: str) -> Conversation:
        try:
            return await self.store.get_or_create(owner_id)
        except PersistenceFailure as e:
            logger.error(
                "PERSISTENCE_FAILURE",
                extra={
                    "owner_id_hash": owner_hash,
                    "operation": "get_or_create",
                    "error": str(e),
                    "action": "CONTINUING_WITHOUT_HISTORY",
                }
            )
            return Conversation(owner_id=owner_id)

    async def _persist(
        self,
        owner_id: str,
        owner_hash: str,
        user_turn: ConversationTurn,
        assistant_turn: ConversationTurn,
    ) -> None:
        # Both turns of an exchange are written together or not at all
        try:
            await self.store.append_turns(owner_id, (user_turn, assistant_turn))
            await self.store.update_last_active(owner_id, datetime.utcnow())
        except PersistenceFailure as e:
            logger.error(
                "PERSISTENCE_FAILURE",
                extra={
                    "owner_id_hash": owner_hash,
                    "operation": "append_turns",
                    "error": str(e),
                    "action": "REPLY_RETURNED_UNSAVED",
                }
            )

    def _schedule_crisis_event(
        self,
        owner_hash: str,
        persona_id: PersonaId,
        response: ComposedResponse,
    ) -> None:
        if self.crisis_publisher is None:
            return
        task = asyncio.get_running_loop().create_task(
            self._publish_crisis(owner_hash, persona_id, response)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _publish_crisis(
        self,
        owner_hash: str,
        persona_id: PersonaId,
        response: ComposedResponse,
    ) -> None:
        turn_id = f"turn_{uuid.uuid4().hex[:12]}"
        try:
            # Kinesis client is blocking
            await asyncio.to_thread(
                self.crisis_publisher.publish_crisis,
                response.classification,
                turn_id=turn_id,
                owner_id_hash=owner_hash,
                persona=persona_id.value,
                pattern_version=self.pattern_version,
            )
        except Exception as e:
            logger.critical(
                "CRISIS_EVENT_PUBLISH_FAILED",
                extra={
                    "turn_id": turn_id,
                    "owner_id_hash": owner_hash,
                    "persona": persona_id.value,
                    "score": response.classification.score,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "MANUAL_ESCALATION_REQUIRED",
                }
            )
