"""Process wiring for the chat service.

Builds every collaborator once at startup from environment variables
and hands them to the FastAPI app factory.

Usage:
    python -m mindspace.services.chat_service.app
"""
import logging
import os
from typing import Optional

from fastapi import FastAPI

from mindspace.shared.database import ConnectionManager, DatabaseConfig
from mindspace.shared.utils import configure_pii_salt
from mindspace.services.llm_service import BaseResponder, ResponderConfig, create_responder
from mindspace.services.safety_service import (
    CrisisClassifier,
    CrisisEventPublisher,
    SafetyConfig,
)
from mindspace.services.safety_service.moderation import ModerationClassifier
from mindspace.services.wellness_service import InMemoryWellnessStore, WellnessService
from .composer import ResponseComposer
from .config import ChatServiceConfig
from .conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
    PostgresConversationStore,
)
from .handler import create_app
from .personas import PersonaPromptBuilder
from .service import ChatService

logger = logging.getLogger(__name__)


def build_conversation_store(config: ChatServiceConfig) -> ConversationStore:
    if config.store_backend == "postgres":
        secret_arn = os.getenv("DB_SECRET_ARN")
        if secret_arn:
            db_config = DatabaseConfig.from_secrets_manager(
                secret_arn, region=os.getenv("AWS_REGION", "us-east-1")
            )
        else:
            db_config = DatabaseConfig.from_env()
        manager = ConnectionManager(db_config)
        manager.initialize()
        return PostgresConversationStore(manager)
    return InMemoryConversationStore()


def build_chat_service(
    config: ChatServiceConfig,
    safety_config: SafetyConfig,
    responder: BaseResponder,
    store: Optional[ConversationStore] = None,
) -> ChatService:
    """Assemble the classifier, composer and service for one process."""
    auxiliary = None
    if config.aux_classifier_enabled:
        auxiliary = ModerationClassifier(api_key=os.getenv("OPENAI_API_KEY"))

    classifier = CrisisClassifier(config=safety_config, auxiliary=auxiliary)
    composer = ResponseComposer(
        classifier=classifier,
        responder=responder,
        prompt_builder=PersonaPromptBuilder(history_limit=config.history_limit),
        responder_timeout_seconds=config.responder_timeout_seconds,
        enrichment_enabled=config.enrichment_enabled,
    )

    publisher = None
    if config.crisis_publishing_enabled:
        publisher = CrisisEventPublisher(stream_name=config.crisis_stream_name)

    return ChatService(
        composer=composer,
        store=store or build_conversation_store(config),
        crisis_publisher=publisher,
        max_message_length=config.max_message_length,
        pattern_version=safety_config.pattern_version,
    )


def build_wellness_service(config: ChatServiceConfig) -> WellnessService:
    """Wellness data is held in process memory on every backend."""
    if config.store_backend != "memory":
        logger.warning(
            "WELLNESS_STORE_VOLATILE",
            extra={
                "store_backend": config.store_backend,
                "detail": "journals and mood check-ins are lost on restart",
            }
        )
    return WellnessService(InMemoryWellnessStore())


def create_app_from_env() -> FastAPI:
    """Create the app with every dependency configured from the environment.

    Environment variables:
        PII_HASH_SALT: Owner id hashing salt (required, >= 32 chars)
        plus those read by ChatServiceConfig, SafetyConfig,
        ResponderConfig and DatabaseConfig
    """
    configure_pii_salt(os.getenv("PII_HASH_SALT", ""))

    config = ChatServiceConfig.from_env()
    chat_service = build_chat_service(
        config=config,
        safety_config=SafetyConfig.from_env(),
        responder=create_responder(ResponderConfig.from_env()),
    )
    wellness_service = build_wellness_service(config)

    logger.info(
        "CHAT_SERVICE_STARTED",
        extra={
            "store_backend": config.store_backend,
            "crisis_publishing": config.crisis_publishing_enabled,
            "aux_classifier": config.aux_classifier_enabled,
        }
    )
    return create_app(chat_service, wellness_service)


def run_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the API server."""
    import uvicorn
    app = create_app_from_env()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    run_server(port=int(os.getenv("PORT", "8000")))
