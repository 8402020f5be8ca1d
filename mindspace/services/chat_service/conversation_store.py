"""Conversation storage.

One conversation per owner, created lazily, append-only. Stores are
injected into ChatService; nothing here is a module-level singleton.

Every backend failure surfaces as PersistenceFailure.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from mindspace.shared.database import BaseRepository, ConnectionManager, DuplicateError
from mindspace.shared.errors import PersistenceFailure
from mindspace.shared.models import Conversation, ConversationTurn

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """Async conversation persistence interface."""

    @abstractmethod
    async def get_or_create(self, owner_id: str) -> Conversation:
        """Current snapshot of the owner's conversation, creating it if absent."""
        pass

    @abstractmethod
    async def get(self, owner_id: str) -> Optional[Conversation]:
        """Current snapshot, or None if the owner has never chatted."""
        pass

    @abstractmethod
    async def append_turns(
        self,
        owner_id: str,
        turns: Sequence[ConversationTurn],
    ) -> None:
        """Append turns, in order, as one write: all of them land or none do."""
        pass

    async def append(self, owner_id: str, turn: ConversationTurn) -> None:
        """Append a single turn to the end of the owner's conversation."""
        await self.append_turns(owner_id, (turn,))

    @abstractmethod
    async def update_last_active(self, owner_id: str, timestamp: datetime) -> None:
        pass


class InMemoryConversationStore(ConversationStore):
    """Process-local store for development and tests.

    Holds immutable Conversation snapshots; each append swaps in a new
    snapshot, so a reader never sees a half-written history.
    """

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}

    async def get_or_create(self, owner_id: str) -> Conversation:
        conversation = self._conversations.get(owner_id)
        if conversation is None:
            conversation = Conversation(owner_id=owner_id)
            self._conversations[owner_id] = conversation
            logger.info("CONVERSATION_CREATED", extra={"backend": "memory"})
        return conversation

    async def get(self, owner_id: str) -> Optional[Conversation]:
        return self._conversations.get(owner_id)

    async def append_turns(
        self,
        owner_id: str,
        turns: Sequence[ConversationTurn],
    ) -> None:
        conversation = await self.get_or_create(owner_id)
        for turn in turns:
            conversation = conversation.with_turn(turn)
        self._conversations[owner_id] = conversation

    async def update_last_active(self, owner_id: str, timestamp: datetime) -> None:
        conversation = await self.get_or_create(owner_id)
        self._conversations[owner_id] = conversation.touched(timestamp)


class ConversationRepository(BaseRepository[Conversation]):
    """conversations(owner_id PK, last_active, created_at DEFAULT now())."""

    id_column = "owner_id"

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "conversations")

    def _row_to_entity(self, row: tuple) -> Conversation:
        return Conversation(owner_id=row[0], last_active=row[1])

    def _entity_to_params(self, entity: Conversation) -> Dict[str, Any]:
        return {
            "owner_id": entity.owner_id,
            "last_active": entity.last_active,
        }


@dataclass(frozen=True)
class StoredTurn:
    owner_id: str
    turn: ConversationTurn


class TurnRepository(BaseRepository[StoredTurn]):
    """conversation_turns(id SERIAL, owner_id, payload JSONB, created_at).

    The serial id preserves append order; payload is ConversationTurn.to_dict().
    """

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "conversation_turns")

    def _row_to_entity(self, row: tuple) -> StoredTurn:
        payload = row[2]
        if isinstance(payload, str):
            payload = json.loads(payload)
        return StoredTurn(owner_id=row[1], turn=ConversationTurn.from_dict(payload))

    def _entity_to_params(self, entity: StoredTurn) -> Dict[str, Any]:
        return {
            "owner_id": entity.owner_id,
            "payload": json.dumps(entity.turn.to_dict()),
            "created_at": entity.turn.created_at,
        }


class PostgresConversationStore(ConversationStore):
    """PostgreSQL-backed store.

    psycopg2 is blocking, so every call runs in a worker thread via
    asyncio.to_thread.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.conversations = ConversationRepository(connection_manager)
        self.turns = TurnRepository(connection_manager)

    def _load(self, owner_id: str) -> Optional[Conversation]:
        header = self.conversations.find_by_id(owner_id)
        if header is None:
            return None
        stored = self.turns.find_by("owner_id", owner_id, order_by="id")
        return Conversation(
            owner_id=owner_id,
            turns=tuple(s.turn for s in stored),
            last_active=header.last_active,
        )

    def _get_or_create(self, owner_id: str) -> Conversation:
        conversation = self._load(owner_id)
        if conversation is not None:
            return conversation

        conversation = Conversation(owner_id=owner_id)
        try:
            self.conversations.insert(conversation)
            logger.info("CONVERSATION_CREATED", extra={"backend": "postgres"})
        except DuplicateError:
            # Created concurrently by another process
            return self._load(owner_id)
        return conversation

    def _touch(self, owner_id: str, timestamp: datetime) -> None:
        self.conversations.save(Conversation(owner_id=owner_id, last_active=timestamp))

    async def get_or_create(self, owner_id: str) -> Conversation:
        return await self._run(self._get_or_create, owner_id)

    async def get(self, owner_id: str) -> Optional[Conversation]:
        return await self._run(self._load, owner_id)

    async def append_turns(
        self,
        owner_id: str,
        turns: Sequence[ConversationTurn],
    ) -> None:
        stored = [StoredTurn(owner_id=owner_id, turn=turn) for turn in turns]
        await self._run(self.turns.insert_many, stored)

    async def update_last_active(self, owner_id: str, timestamp: datetime) -> None:
        await self._run(self._touch, owner_id, timestamp)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except PersistenceFailure:
            raise
        except Exception as e:
            raise PersistenceFailure(f"{func.__name__} failed: {e}") from e
