"""Tests for ChatService: validation, ordering, persistence and escalation."""
import asyncio
import logging
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from mindspace.shared.errors import InvalidInput, PersistenceFailure, UnknownPersona
from mindspace.shared.models import Classification, Conversation, PersonaId, TurnRole
from mindspace.shared.utils import configure_pii_salt, hash_pii
from mindspace.services.llm_service import BaseResponder, ResponderReply
from mindspace.services.safety_service import CrisisClassifier, CrisisEventPublisher
from mindspace.services.chat_service.composer import (
    ComposedResponse,
    ResponseComposer,
    ResponseOutcome,
)
from mindspace.services.chat_service.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
)
from mindspace.services.chat_service.service import ChatService

CRISIS_TEXT = "I want to die, I cut myself and took an overdose"


@pytest.fixture(autouse=True)
def pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def responder():
    mock = MagicMock(spec=BaseResponder)
    mock.generate = AsyncMock(
        return_value=ResponderReply(text="I'm here with you.", model="m", provider="test")
    )
    return mock


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def service(responder, store):
    composer = ResponseComposer(classifier=CrisisClassifier(), responder=responder)
    return ChatService(composer=composer, store=store)


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner_id", [None, "", "   "])
    async def test_owner_required(self, service, responder, owner_id):
        with pytest.raises(InvalidInput, match="Owner id"):
            await service.send_message(owner_id, "maya", "hello")

        responder.generate.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [None, "", "  \n\t"])
    async def test_text_required(self, service, responder, text):
        with pytest.raises(InvalidInput, match="Message text"):
            await service.send_message("student-1", "maya", text)

        responder.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_oversized_text(self, service, responder):
        with pytest.raises(InvalidInput, match="1000"):
            await service.send_message("student-1", "maya", "a" * 1001)

        responder.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_length_bound_inclusive(self, service):
        response = await service.send_message("student-1", "maya", "a" * 1000)

        assert response.outcome == ResponseOutcome.DELIVERED

    @pytest.mark.asyncio
    async def test_unknown_persona(self, service, store, responder):
        with pytest.raises(UnknownPersona):
            await service.send_message("student-1", "krishna", "hello")

        responder.generate.assert_not_called()
        assert await store.get("student-1") is None

    def test_validate_normalizes_persona(self, service):
        assert service.validate("student-1", "arjuna", "hi") == (PersonaId.ARJUNA, "hi")


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_turns_persisted(self, service, store):
        response = await service.send_message("student-1", "maya", "Exams are hard")

        conversation = await store.get("student-1")
        user_turn, assistant_turn = conversation.turns
        assert user_turn.role == TurnRole.USER
        assert user_turn.text == "Exams are hard"
        assert user_turn.classification == response.classification
        assert assistant_turn.role == TurnRole.ASSISTANT
        assert assistant_turn.text == "I'm here with you."
        assert assistant_turn.persona == PersonaId.MAYA

    @pytest.mark.asyncio
    async def test_history_grows_between_turns(self, service, responder):
        await service.send_message("student-1", "maya", "first")
        await service.send_message("student-1", "maya", "second")

        context = responder.generate.await_args.args[0]
        assert [t.text for t in context.turns] == ["first", "I'm here with you."]

    @pytest.mark.asyncio
    async def test_crisis_turn_persisted_with_safety_text(self, service, store, responder):
        response = await service.send_message("student-1", "arjuna", CRISIS_TEXT)

        conversation = await store.get("student-1")
        assert response.outcome == ResponseOutcome.SAFETY_OVERRIDE
        assert conversation.turns[0].classification.triggered is True
        assert conversation.turns[1].text == response.text
        responder.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_owner_turns_keep_acceptance_order(self, store):
        """Later requests finishing faster must not overtake earlier ones."""
        seen_lengths = []

        async def respond(conversation, persona, text):
            seen_lengths.append(len(conversation))
            await asyncio.sleep(0.03 if text == "first" else 0.0)
            return ComposedResponse(
                outcome=ResponseOutcome.DELIVERED,
                text=f"reply to {text}",
                classification=Classification(triggered=False, score=0.0),
                persona=PersonaId.MAYA,
            )

        composer = MagicMock(spec=ResponseComposer)
        composer.respond = respond
        service = ChatService(composer=composer, store=store)

        await asyncio.gather(
            service.send_message("student-1", "maya", "first"),
            service.send_message("student-1", "maya", "second"),
            service.send_message("student-1", "maya", "third"),
        )

        conversation = await store.get("student-1")
        assert [t.text for t in conversation.turns] == [
            "first", "reply to first",
            "second", "reply to second",
            "third", "reply to third",
        ]
        assert seen_lengths == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_owners_do_not_share_history(self, service, store):
        await service.send_message("student-1", "maya", "mine")
        await service.send_message("student-2", "maya", "yours")

        assert [t.text for t in (await store.get("student-2")).turns][0] == "yours"
        assert len(await store.get("student-1")) == 2


    @pytest.mark.asyncio
    async def test_idle_owners_do_not_keep_locks(self, service):
        for i in range(50):
            await service.send_message(f"student-{i}", "maya", "hello")

        assert service._locks == {}

    @pytest.mark.asyncio
    async def test_lock_released_after_concurrent_turns(self, service):
        await asyncio.gather(*(
            service.send_message("student-1", "maya", f"message {i}") for i in range(5)
        ))

        assert service._locks == {}

    @pytest.mark.asyncio
    async def test_exchange_written_in_one_call(self, responder):
        store = MagicMock(spec=ConversationStore)
        store.get_or_create = AsyncMock(return_value=Conversation(owner_id="student-1"))
        store.append_turns = AsyncMock()
        store.update_last_active = AsyncMock()
        composer = ResponseComposer(classifier=CrisisClassifier(), responder=responder)
        service = ChatService(composer=composer, store=store)

        await service.send_message("student-1", "maya", "Exams are hard")

        store.append_turns.assert_awaited_once()
        owner_id, turns = store.append_turns.await_args.args
        assert owner_id == "student-1"
        assert [t.role for t in turns] == [TurnRole.USER, TurnRole.ASSISTANT]
        store.append.assert_not_called()


class TestPersistenceFailure:

    @pytest.fixture
    def failing_store(self):
        store = MagicMock(spec=ConversationStore)
        store.get_or_create = AsyncMock(side_effect=PersistenceFailure("db down"))
        store.append_turns = AsyncMock(side_effect=PersistenceFailure("db down"))
        store.update_last_active = AsyncMock()
        return store

    @pytest.mark.asyncio
    async def test_reply_still_returned(self, responder, failing_store):
        composer = ResponseComposer(classifier=CrisisClassifier(), responder=responder)
        service = ChatService(composer=composer, store=failing_store)

        response = await service.send_message("student-1", "maya", "Exams are hard")

        assert response.outcome == ResponseOutcome.DELIVERED
        assert response.text == "I'm here with you."
        context = responder.generate.await_args.args[0]
        assert context.turns == ()
        failing_store.update_last_active.assert_not_called()

    @pytest.mark.asyncio
    async def test_safety_reply_still_returned(self, responder, failing_store):
        composer = ResponseComposer(classifier=CrisisClassifier(), responder=responder)
        service = ChatService(composer=composer, store=failing_store)

        response = await service.send_message("student-1", "maya", CRISIS_TEXT)

        assert response.outcome == ResponseOutcome.SAFETY_OVERRIDE


class TestCrisisPublishing:

    @pytest.fixture
    def publisher(self):
        mock = MagicMock(spec=CrisisEventPublisher)
        mock.publish_crisis.return_value = True
        return mock

    @pytest.fixture
    def publishing_service(self, responder, store, publisher):
        composer = ResponseComposer(classifier=CrisisClassifier(), responder=responder)
        return ChatService(
            composer=composer,
            store=store,
            crisis_publisher=publisher,
            pattern_version="2025.06.01",
        )

    @pytest.mark.asyncio
    async def test_override_publishes(self, publishing_service, publisher):
        response = await publishing_service.send_message("student-1", "arjuna", CRISIS_TEXT)
        await publishing_service.drain()

        publisher.publish_crisis.assert_called_once()
        args, kwargs = publisher.publish_crisis.call_args
        assert args[0] == response.classification
        assert kwargs["owner_id_hash"] == hash_pii("student-1")
        assert kwargs["persona"] == "arjuna"
        assert kwargs["pattern_version"] == "2025.06.01"
        assert kwargs["turn_id"].startswith("turn_")

    @pytest.mark.asyncio
    async def test_owner_id_never_published_raw(self, publishing_service, publisher):
        await publishing_service.send_message("student-1", "arjuna", CRISIS_TEXT)
        await publishing_service.drain()

        _, kwargs = publisher.publish_crisis.call_args
        assert "student-1" not in kwargs.values()

    @pytest.mark.asyncio
    async def test_delivered_does_not_publish(self, publishing_service, publisher):
        await publishing_service.send_message("student-1", "arjuna", "Exams are hard")
        await publishing_service.drain()

        publisher.publish_crisis.assert_not_called()

    @pytest.mark.asyncio
    async def test_slow_publisher_does_not_delay_reply(self, publishing_service, publisher):
        release = threading.Event()
        finished = threading.Event()

        def blocking_publish(*args, **kwargs):
            release.wait(5)
            finished.set()
            return True

        publisher.publish_crisis.side_effect = blocking_publish

        response = await asyncio.wait_for(
            publishing_service.send_message("student-1", "arjuna", CRISIS_TEXT),
            timeout=1.0,
        )

        assert response.outcome == ResponseOutcome.SAFETY_OVERRIDE
        assert not finished.is_set()
        release.set()
        await publishing_service.drain()
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_publisher_error_does_not_escape(self, publishing_service, publisher, caplog):
        publisher.publish_crisis.side_effect = RuntimeError("kinesis unreachable")

        with caplog.at_level(logging.CRITICAL):
            response = await publishing_service.send_message("student-1", "arjuna", CRISIS_TEXT)
            await publishing_service.drain()

        assert response.outcome == ResponseOutcome.SAFETY_OVERRIDE
        assert "CRISIS_EVENT_PUBLISH_FAILED" in caplog.messages
        assert publishing_service._background == set()


class TestHistory:

    @pytest.mark.asyncio
    async def test_empty_for_new_owner(self, service):
        conversation = await service.history("student-9")

        assert conversation.owner_id == "student-9"
        assert conversation.turns == ()

    @pytest.mark.asyncio
    async def test_returns_turns(self, service):
        await service.send_message("student-1", "maya", "hello")

        conversation = await service.history("student-1")

        assert len(conversation) == 2

    @pytest.mark.asyncio
    async def test_owner_required(self, service):
        with pytest.raises(InvalidInput):
            await service.history("")
