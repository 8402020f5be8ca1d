"""Responder interface and implementations.

A responder turns a PromptContext into assistant text. Providers:
OpenAI chat completions and HuggingFace inference endpoints. Callers
never see provider exceptions; every failure is a ResponderFailure.
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from mindspace.shared.errors import ResponderFailure
from mindspace.shared.models import PromptContext

logger = logging.getLogger(__name__)


class ResponderProvider(Enum):
    """Supported generative backends."""
    HUGGINGFACE = "huggingface"
    OPENAI = "openai"


@dataclass
class ResponderConfig:
    """Configuration for responder inference."""
    provider: ResponderProvider
    model_name: str
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: int = 512
    temperature: float = 0.7
    top_p: float = 0.9
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "ResponderConfig":
        """Create configuration from environment variables.

        Environment variables:
            RESPONDER_PROVIDER: "openai" or "huggingface" (default openai)
            RESPONDER_MODEL: Model name
            RESPONDER_ENDPOINT: Inference endpoint (HuggingFace only)
            OPENAI_API_KEY / HUGGINGFACE_TOKEN: Credentials
            RESPONDER_TIMEOUT: Request timeout in seconds
        """
        provider = ResponderProvider(os.getenv("RESPONDER_PROVIDER", "openai").lower())
        if provider == ResponderProvider.OPENAI:
            api_key = os.getenv("OPENAI_API_KEY")
        else:
            api_key = os.getenv("HUGGINGFACE_TOKEN")

        return cls(
            provider=provider,
            model_name=os.getenv("RESPONDER_MODEL", "gpt-4o-mini"),
            endpoint=os.getenv("RESPONDER_ENDPOINT"),
            api_key=api_key,
            max_tokens=int(os.getenv("RESPONDER_MAX_TOKENS", "512")),
            temperature=float(os.getenv("RESPONDER_TEMPERATURE", "0.7")),
            timeout_seconds=float(os.getenv("RESPONDER_TIMEOUT", "30")),
        )


@dataclass
class ResponderReply:
    """Raw reply from a responder."""
    text: str
    model: str
    provider: str
    tokens_used: Optional[int] = None
    latency_ms: Optional[float] = None
    metadata: Optional[Dict] = None


class BaseResponder(ABC):
    """Abstract base class for responder implementations."""

    def __init__(self, config: ResponderConfig):
        """Initialize responder with configuration.

        Args:
            config: Responder configuration
        """
        self.config = config
        logger.info(
            "RESPONDER_INITIALIZED",
            extra={
                "provider": config.provider.value,
                "model": config.model_name
            }
        )

    @abstractmethod
    async def generate(self, context: PromptContext) -> ResponderReply:
        """Generate an assistant reply.

        Args:
            context: System instruction, prior turns and latest user text

        Returns:
            ResponderReply (text may be empty; callers decide what that means)

        Raises:
            ResponderFailure: On transport, API or response-shape errors
        """
        pass


class HuggingFaceResponder(BaseResponder):
    """HuggingFace inference endpoint implementation."""

    def __init__(self, config: ResponderConfig):
        super().__init__(config)

        if not config.endpoint:
            raise ValueError("HuggingFace endpoint required")

        self.endpoint = config.endpoint
        self.headers = {}

        if config.api_key:
            self.headers["Authorization"] = f"Bearer {config.api_key}"

    @staticmethod
    def format_prompt(context: PromptContext) -> str:
        """Flatten a PromptContext into a single text-generation prompt."""
        lines = [context.system_instruction, ""]
        for turn in context.turns:
            speaker = "User" if turn.role == "user" else "Assistant"
            lines.append(f"{speaker}: {turn.text}")
        lines.append(f"User: {context.latest_user_text}")
        lines.append("Assistant:")
        return "\n".join(lines)

    async def generate(self, context: PromptContext) -> ResponderReply:
        import aiohttp

        payload = {
            "inputs": self.format_prompt(context),
            "parameters": {
                "max_new_tokens": self.config.max_tokens,
                "temperature": self.config.temperature,
                "top_p": self.config.top_p,
                "return_full_text": False
            }
        }

        start_time = time.time()

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    headers=self.headers,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds)
                ) as response:
                    response.raise_for_status()
                    result = await response.json()

            if isinstance(result, list) and len(result) > 0:
                generated_text = result[0].get("generated_text", "")
            else:
                generated_text = result.get("generated_text", "")
        except Exception as e:
            logger.error(
                "RESPONDER_REQUEST_FAILED",
                extra={
                    "provider": self.config.provider.value,
                    "model": self.config.model_name,
                    "error": str(e)
                }
            )
            raise ResponderFailure(f"HuggingFace generation failed: {e}") from e

        latency_ms = (time.time() - start_time) * 1000

        logger.info(
            "RESPONDER_GENERATED",
            extra={
                "model": self.config.model_name,
                "latency_ms": latency_ms
            }
        )

        return ResponderReply(
            text=(generated_text or "").strip(),
            model=self.config.model_name,
            provider=self.config.provider.value,
            latency_ms=latency_ms,
            metadata={"endpoint": self.endpoint}
        )


class OpenAIResponder(BaseResponder):
    """OpenAI chat completions implementation."""

    # Stored "model" turns are "assistant" turns to the chat API
    ROLE_MAP = {"user": "user", "model": "assistant"}

    def __init__(self, config: ResponderConfig, client=None):
        """Initialize OpenAI responder.

        Args:
            config: Responder configuration with API key
            client: Pre-built AsyncOpenAI client
        """
        super().__init__(config)

        if client is None:
            if not config.api_key:
                raise ValueError("OpenAI API key required")
            import openai
            client = openai.AsyncOpenAI(api_key=config.api_key)

        self.client = client

    def build_messages(self, context: PromptContext) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": context.system_instruction}]
        for turn in context.turns:
            messages.append({"role": self.ROLE_MAP[turn.role], "content": turn.text})
        messages.append({"role": "user", "content": context.latest_user_text})
        return messages

    async def generate(self, context: PromptContext) -> ResponderReply:
        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(
                model=self.config.model_name,
                messages=self.build_messages(context),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                top_p=self.config.top_p,
                timeout=self.config.timeout_seconds
            )
            generated_text = response.choices[0].message.content or ""
            tokens_used = response.usage.total_tokens if response.usage else None
        except Exception as e:
            logger.error(
                "RESPONDER_REQUEST_FAILED",
                extra={
                    "provider": self.config.provider.value,
                    "model": self.config.model_name,
                    "error": str(e)
                }
            )
            raise ResponderFailure(f"OpenAI generation failed: {e}") from e

        latency_ms = (time.time() - start_time) * 1000

        logger.info(
            "RESPONDER_GENERATED",
            extra={
                "model": self.config.model_name,
                "latency_ms": latency_ms,
                "tokens_used": tokens_used
            }
        )

        return ResponderReply(
            text=generated_text.strip(),
            model=self.config.model_name,
            provider=self.config.provider.value,
            tokens_used=tokens_used,
            latency_ms=latency_ms
        )


def create_responder(config: ResponderConfig) -> BaseResponder:
    """Factory function to create a responder.

    Raises:
        ValueError: If provider not supported
    """
    if config.provider == ResponderProvider.HUGGINGFACE:
        return HuggingFaceResponder(config)
    elif config.provider == ResponderProvider.OPENAI:
        return OpenAIResponder(config)
    else:
        raise ValueError(f"Unsupported provider: {config.provider}")
