"""Tests for the chat service HTTP API."""
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from mindspace.shared.errors import PersistenceFailure
from mindspace.shared.utils import configure_pii_salt
from mindspace.services.llm_service import BaseResponder, ResponderReply
from mindspace.services.safety_service import CrisisClassifier, safety_message
from mindspace.services.wellness_service import InMemoryWellnessStore, WellnessService
from mindspace.services.chat_service.composer import ResponseComposer
from mindspace.services.chat_service.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
)
from mindspace.services.chat_service.handler import create_app
from mindspace.services.chat_service.service import ChatService

OWNER = {"X-Owner-Id": "student-1"}


@pytest.fixture(autouse=True)
def pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def responder():
    mock = MagicMock(spec=BaseResponder)
    mock.generate = AsyncMock(
        return_value=ResponderReply(text="That sounds heavy.", model="m", provider="test")
    )
    return mock


def _chat_service(responder, store=None):
    composer = ResponseComposer(classifier=CrisisClassifier(), responder=responder)
    return ChatService(composer=composer, store=store or InMemoryConversationStore())


@pytest_asyncio.fixture
async def client(responder):
    app = create_app(_chat_service(responder), WellnessService(InMemoryWellnessStore()))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "chat-service"

    @pytest.mark.asyncio
    async def test_personas(self, client):
        response = await client.get("/personas")

        ids = [p["id"] for p in response.json()["personas"]]
        assert ids == ["arjuna", "maya"]


class TestChatMessage:

    @pytest.mark.asyncio
    async def test_delivered_with_enrichment(self, client):
        response = await client.post(
            "/chat/message",
            json={"persona": "arjuna", "message": "I've been really anxious about exams"},
            headers=OWNER,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "delivered"
        assert data["text"] == "That sounds heavy."
        assert data["classification"] == {"triggered": False, "score": 0.0, "reasons": []}
        assert data["enrichment"]["citation"] == "Bhagavad Gita Chapter 2, Verse 47"

    @pytest.mark.asyncio
    async def test_no_enrichment_key_when_absent(self, client):
        response = await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "I've been really anxious about exams"},
            headers=OWNER,
        )

        assert "enrichment" not in response.json()

    @pytest.mark.asyncio
    async def test_safety_override(self, client, responder):
        response = await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "I want to die, I cut myself and took an overdose"},
            headers=OWNER,
        )

        data = response.json()
        assert response.status_code == 200
        assert data["outcome"] == "safety_override"
        assert data["text"] == safety_message("Maya")
        assert data["classification"]["triggered"] is True
        assert data["classification"]["score"] == 0.8
        responder.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_degraded_is_still_200(self, client, responder):
        responder.generate.side_effect = RuntimeError("backend down")

        response = await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "Exams are hard"},
            headers=OWNER,
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "degraded"

    @pytest.mark.asyncio
    async def test_unknown_persona(self, client):
        response = await client.post(
            "/chat/message",
            json={"persona": "krishna", "message": "hello"},
            headers=OWNER,
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "krishna" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_missing_owner_header(self, client):
        response = await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "hello"},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Owner id required"}

    @pytest.mark.asyncio
    async def test_empty_message(self, client):
        response = await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "   "},
            headers=OWNER,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_oversized_message(self, client, responder):
        response = await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "a" * 1001},
            headers=OWNER,
        )

        assert response.status_code == 400
        responder.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        response = await client.post("/chat/message", json={"persona": "maya"}, headers=OWNER)

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Malformed request body"}


class TestChatHistory:

    @pytest.mark.asyncio
    async def test_history_after_message(self, client):
        await client.post(
            "/chat/message",
            json={"persona": "maya", "message": "Exams are hard"},
            headers=OWNER,
        )

        response = await client.get("/chat/history", headers=OWNER)

        turns = response.json()["turns"]
        assert [t["role"] for t in turns] == ["user", "assistant"]
        assert turns[0]["text"] == "Exams are hard"
        assert turns[0]["classification"]["triggered"] is False
        assert turns[1]["persona"] == "maya"
        assert "lastActive" in response.json()

    @pytest.mark.asyncio
    async def test_empty_history(self, client):
        response = await client.get("/chat/history", headers={"X-Owner-Id": "student-2"})

        assert response.status_code == 200
        assert response.json()["turns"] == []

    @pytest.mark.asyncio
    async def test_store_outage_is_503(self, responder):
        store = MagicMock(spec=ConversationStore)
        store.get = AsyncMock(side_effect=PersistenceFailure("db down"))
        app = create_app(_chat_service(responder, store), WellnessService(InMemoryWellnessStore()))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/chat/history", headers=OWNER)

        assert response.status_code == 503
        assert response.json()["success"] is False


class TestWellnessRoutes:

    @pytest.mark.asyncio
    async def test_journal(self, client):
        response = await client.post("/journal", json={"text": "A calm day"}, headers=OWNER)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["id"].startswith("jrn_")

    @pytest.mark.asyncio
    async def test_mood_out_of_range(self, client):
        response = await client.post("/mood", json={"mood": 9}, headers=OWNER)

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_wellness_summary(self, client):
        await client.post("/mood", json={"mood": 5, "note": "Great run"}, headers=OWNER)

        response = await client.get("/wellness", headers=OWNER)

        data = response.json()
        assert data["checkins"] == 1
        assert data["score"] == 80
        assert data["streak"] == 1
        assert len(data["trend"]) == 7

    @pytest.mark.asyncio
    async def test_wellness_default(self, client):
        response = await client.get("/wellness", headers=OWNER)

        assert response.json()["score"] == 75
