"""Chat Service configuration."""
import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class ChatServiceConfig:
    """Configuration for the chat pipeline and its storage."""

    # Prior turns sent to the responder
    history_limit: int = 10

    # Inbound user text bound (characters)
    max_message_length: int = 1000

    # Responder budget; a timeout is handled exactly like a failure
    responder_timeout_seconds: float = 30.0

    # Attach knowledge-table fragments to delivered replies
    enrichment_enabled: bool = True

    # "memory" or "postgres"
    store_backend: str = "memory"

    crisis_publishing_enabled: bool = False
    crisis_stream_name: str = "mindspace-crisis-events"

    # Wire the OpenAI moderation classifier in as a second opinion
    aux_classifier_enabled: bool = False

    def __post_init__(self):
        if self.history_limit < 0:
            raise ValueError(f"history_limit must be >= 0, got {self.history_limit}")
        if self.max_message_length < 1:
            raise ValueError(
                f"max_message_length must be >= 1, got {self.max_message_length}"
            )
        if self.responder_timeout_seconds <= 0:
            raise ValueError(
                f"responder_timeout_seconds must be > 0, got {self.responder_timeout_seconds}"
            )
        if self.store_backend not in ("memory", "postgres"):
            raise ValueError(f"Unknown store backend: {self.store_backend}")

    @classmethod
    def from_env(cls) -> "ChatServiceConfig":
        """Create config from environment variables.

        Environment variables:
            CHAT_HISTORY_LIMIT: Prior turns in the prompt (default 10)
            CHAT_MAX_MESSAGE_LENGTH: Inbound text bound (default 1000)
            RESPONDER_TIMEOUT: Responder timeout in seconds (default 30)
            ENRICHMENT_ENABLED: Attach knowledge fragments (default true)
            CHAT_STORE_BACKEND: memory | postgres (default memory)
            CRISIS_PUBLISHING_ENABLED: Publish crisis events (default false)
            CRISIS_STREAM_NAME: Kinesis stream for crisis events
            AUX_CLASSIFIER_ENABLED: Use OpenAI moderation (default false)
        """
        return cls(
            history_limit=int(os.getenv("CHAT_HISTORY_LIMIT", "10")),
            max_message_length=int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "1000")),
            responder_timeout_seconds=float(os.getenv("RESPONDER_TIMEOUT", "30")),
            enrichment_enabled=_env_flag("ENRICHMENT_ENABLED", "true"),
            store_backend=os.getenv("CHAT_STORE_BACKEND", "memory").lower(),
            crisis_publishing_enabled=_env_flag("CRISIS_PUBLISHING_ENABLED", "false"),
            crisis_stream_name=os.getenv("CRISIS_STREAM_NAME", "mindspace-crisis-events"),
            aux_classifier_enabled=_env_flag("AUX_CLASSIFIER_ENABLED", "false"),
        )
