"""Chat Service HTTP API (FastAPI).

Endpoints:
- GET  /health
- GET  /personas
- POST /chat/message   {persona, message}    header X-Owner-Id
- GET  /chat/history                          header X-Owner-Id
- POST /journal        {text}                 header X-Owner-Id
- POST /mood           {mood, note?}          header X-Owner-Id
- GET  /wellness                              header X-Owner-Id

Authentication happens upstream; the gateway forwards the verified
owner id in X-Owner-Id. Rejected input is the only error a client sees
as such: 400 with {"success": false, "message": ...}.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mindspace.shared.errors import InvalidInput, PersistenceFailure
from mindspace.services.wellness_service import WellnessService
from .personas import PERSONAS
from .service import ChatService

logger = logging.getLogger(__name__)


class ChatMessageRequest(BaseModel):
    """Inbound chat turn."""
    persona: str
    message: str


class JournalRequest(BaseModel):
    text: str


class MoodRequest(BaseModel):
    mood: int
    note: Optional[str] = None


def _rejection(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app(chat_service: ChatService, wellness_service: WellnessService) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Let queued crisis events reach Kinesis before exit
        await chat_service.drain()

    app = FastAPI(
        title="MindSpace Chat API",
        description="Persona chat with crisis screening, journals and mood tracking",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        logger.warning(
            "REQUEST_REJECTED",
            extra={"path": request.url.path, "error_type": type(exc).__name__}
        )
        return _rejection(str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "REQUEST_REJECTED",
            extra={"path": request.url.path, "error_type": "RequestValidationError"}
        )
        return _rejection("Malformed request body")

    @app.exception_handler(PersistenceFailure)
    async def persistence_handler(request: Request, exc: PersistenceFailure):
        logger.error(
            "PERSISTENCE_FAILURE",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return _rejection("Storage temporarily unavailable, please try again", 503)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "chat-service",
            "timestamp": datetime.utcnow().isoformat(),
        }

    @app.get("/personas")
    async def list_personas():
        return {"personas": [p.to_dict() for p in PERSONAS.values()]}

    @app.post("/chat/message")
    async def send_message(
        request: ChatMessageRequest,
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ):
        """Screen, answer and store one user turn.

        Response:
            {
                "text": "...",
                "classification": {"triggered": false, "score": 0.0, "reasons": []},
                "enrichment": {...},   # only when attached
                "outcome": "delivered" | "safety_override" | "degraded"
            }
        """
        response = await chat_service.send_message(owner_id, request.persona, request.message)
        return response.to_dict()

    @app.get("/chat/history")
    async def chat_history(owner_id: Optional[str] = Header(None, alias="X-Owner-Id")):
        conversation = await chat_service.history(owner_id)
        return {
            "turns": [turn.to_dict() for turn in conversation.turns],
            "lastActive": conversation.last_active.isoformat(),
        }

    @app.post("/journal")
    async def add_journal(
        request: JournalRequest,
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ):
        entry = await wellness_service.record_journal(owner_id, request.text)
        return {"success": True, "id": entry.entry_id}

    @app.post("/mood")
    async def add_mood(
        request: MoodRequest,
        owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    ):
        checkin = await wellness_service.record_mood(owner_id, request.mood, request.note)
        return {"success": True, "id": checkin.checkin_id}

    @app.get("/wellness")
    async def wellness(owner_id: Optional[str] = Header(None, alias="X-Owner-Id")):
        summary = await wellness_service.summary(owner_id)
        return summary.to_dict()

    return app
