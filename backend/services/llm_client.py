# backend/services/llm_client.py
"""
Generation Client

Provider-agnostic access to chat completions, blocking and token-streaming.

Key Features:
- Two interchangeable backends: OpenAI (primary) and Groq (secondary)
- Backend chosen once at startup from Settings.ai_provider
- Transparent fallback to OpenAI when Groq is selected without a key (logged once)
- Model-name translation for the Groq namespace
- Bounded per-call timeouts
- Provider errors normalized to GenerationError
- Optional payload preview logging (never logs keys)
"""

import logging
from typing import AsyncIterator, Dict, List, Optional

import groq
import openai
from groq import AsyncGroq
from openai import AsyncOpenAI

from config import Settings, get_settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PAYLOAD_PREVIEW_CHARS = 800


class GenerationError(RuntimeError):
    """A provider call failed (transport, auth, rate limit or timeout)."""


def log_llm_payload(label: str, messages: List[Dict[str, str]]) -> None:
    """Log a short preview of each message sent to the model."""
    logger.info(f"LLM payload - {label}:")
    for idx, message in enumerate(messages):
        content = message.get("content") or ""
        preview = content.replace("\n", " ")[:PAYLOAD_PREVIEW_CHARS]
        suffix = "...(truncated)" if len(content) > PAYLOAD_PREVIEW_CHARS else ""
        logger.info(f"  [{idx}] {message.get('role')}: {preview}{suffix}")


class ChatBackend:
    """Base class for one chat-completion provider."""

    name = "base"

    def resolve_model(self, model: str) -> str:
        return model

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float
    ) -> str:
        raise NotImplementedError

    def stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float
    ) -> AsyncIterator[str]:
        raise NotImplementedError


class _SDKChatBackend(ChatBackend):
    """Shared logic for SDKs exposing the OpenAI chat.completions surface."""

    # Base error class of the provider SDK
    error_types: tuple = ()

    def __init__(self, api_key: Optional[str], timeout: float):
        self.api_key = api_key
        self.timeout = timeout
        self._client = None

    def _build_client(self):
        raise NotImplementedError

    @property
    def client(self):
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def complete(self, messages, model, max_tokens, temperature) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.resolve_model(model),
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except self.error_types as e:
            logger.error(f"{self.name} completion failed: {e}")
            raise GenerationError(f"{self.name} completion failed: {e}") from e
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream(self, messages, model, max_tokens, temperature) -> AsyncIterator[str]:
        try:
            response = await self.client.chat.completions.create(
                model=self.resolve_model(model),
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except self.error_types as e:
            logger.error(f"{self.name} stream failed: {e}")
            raise GenerationError(f"{self.name} stream failed: {e}") from e


class OpenAIChatBackend(_SDKChatBackend):
    name = "openai"
    error_types = (openai.OpenAIError,)

    def _build_client(self):
        return AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)


class GroqChatBackend(_SDKChatBackend):
    """Groq backend; maps OpenAI model names onto Groq-hosted open models."""

    name = "groq"
    error_types = (groq.GroqError,)

    MODEL_MAP = {
        "gpt-4o-mini": "llama-3.1-8b-instant",
        "gpt-4o": "llama-3.3-70b-versatile",
        "gpt-4": "llama-3.3-70b-versatile",
        "gpt-3.5-turbo": "mixtral-8x7b-32768",
        "gpt-3.5-turbo-0125": "mixtral-8x7b-32768",
    }
    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(self, api_key: Optional[str], timeout: float, base_url: Optional[str] = None):
        super().__init__(api_key, timeout)
        self.base_url = base_url

    def resolve_model(self, model: str) -> str:
        return self.MODEL_MAP.get(model, self.DEFAULT_MODEL)

    def _build_client(self):
        kwargs = {"api_key": self.api_key, "timeout": self.timeout}
        if self.base_url:
            kwargs["base_url"] = self.base_url
        return AsyncGroq(**kwargs)


class GenerationClient:
    """
    Chat-completion facade used by the question pipeline and voice sessions.

    Attributes:
        backend: Active ChatBackend
        fell_back: True when the configured secondary provider was unavailable
        log_payloads: Log message previews before each call
    """

    def __init__(self, backend: ChatBackend, log_payloads: bool = False, fell_back: bool = False):
        self.backend = backend
        self.log_payloads = log_payloads
        self.fell_back = fell_back

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationClient":
        """
        Select the backend named by settings.ai_provider.

        Groq without a key falls back to OpenAI for the life of the process.
        """
        fell_back = False
        if settings.ai_provider == "groq":
            if settings.groq_api_key:
                backend = GroqChatBackend(
                    settings.groq_api_key,
                    settings.llm_timeout_seconds,
                    settings.groq_base_url,
                )
                logger.info("Using Groq for text generation")
                return cls(backend, log_payloads=settings.llm_log_enabled)
            logger.warning("AI_PROVIDER=groq but GROQ_API_KEY is missing; falling back to OpenAI")
            fell_back = True
        elif settings.ai_provider != "openai":
            logger.warning(f"Unknown AI_PROVIDER '{settings.ai_provider}'; using OpenAI")

        backend = OpenAIChatBackend(settings.openai_api_key, settings.llm_timeout_seconds)
        return cls(backend, log_payloads=settings.llm_log_enabled, fell_back=fell_back)

    @property
    def provider_name(self) -> str:
        return self.backend.name

    def resolve_model(self, model: str) -> str:
        return self.backend.resolve_model(model)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: str = "gpt-4o-mini",
        max_tokens: int = 80,
        temperature: float = 0.35,
        label: str = "completion"
    ) -> str:
        """
        Run one blocking chat completion.

        Returns:
            Response text (may be empty)

        Raises:
            GenerationError: On any provider failure
        """
        if self.log_payloads:
            log_llm_payload(label, messages)
        return await self.backend.complete(messages, model, max_tokens, temperature)

    async def stream(
        self,
        messages: List[Dict[str, str]],
        model: str = "gpt-4o-mini",
        max_tokens: int = 120,
        temperature: float = 0.7,
        label: str = "stream"
    ) -> AsyncIterator[str]:
        """Yield response tokens in order as the provider produces them."""
        if self.log_payloads:
            log_llm_payload(label, messages)
        async for token in self.backend.stream(messages, model, max_tokens, temperature):
            yield token


# ==================== Singleton Instance ====================

_generation_client: Optional[GenerationClient] = None


def get_generation_client(settings: Optional[Settings] = None) -> GenerationClient:
    """Get the process-wide GenerationClient, building it from settings on first use."""
    global _generation_client
    if _generation_client is None:
        _generation_client = GenerationClient.from_settings(settings or get_settings())
    return _generation_client


def reset_generation_client() -> None:
    global _generation_client
    _generation_client = None
