# =============================================================================
# LLM Providers — Answer Generation Backends
# =============================================================================
#
# Common completion interface with two implementations:
#   - OpenAICompatibleProvider: any OpenAI-style chat API. The default points
#     at Groq (llama-3.3-70b-versatile); Ollama, OpenAI and others work by
#     changing LLM_BASE_URL / LLM_MODEL.
#   - AnthropicProvider: Claude via the native Anthropic SDK.
#
# DESIGN DECISION: Protocol (structural typing), same as VectorStore.
# The RAG graph only needs an object with an async `complete()`; tests
# pass an AsyncMock.
#
# DESIGN DECISION: Native SDKs instead of framework wrappers.
# Request parameters map one-to-one onto the provider call, which keeps
# temperature and token limits easy to audit for a banking deployment.
#
# DESIGN DECISION: Async only. Generation happens inside FastAPI handlers.
# Ingestion workers never call the LLM.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from banking_rag.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """Provider-neutral completion result."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Interface every completion backend implements."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            messages: Dicts with "role" ("user" | "assistant") and "content".
            system: System prompt. Anthropic takes it as a top-level kwarg;
                OpenAI-style APIs take it as the first message.
            temperature: Sampling temperature; defaults to settings.
            max_tokens: Output token cap; defaults to settings.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: OpenAI-Compatible (Groq, Ollama, OpenAI, ...)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Chat completions through the OpenAI SDK with a configurable base URL.

    Switching hosts is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.groq.com/openai/v1
        LLM_API_KEY=your-key
        LLM_MODEL=llama-3.3-70b-versatile
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for the answer model. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=all_messages,
            max_tokens=max_tokens or self._max_tokens,
            temperature=self._temperature if temperature is None else temperature,
        )

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Claude through AsyncAnthropic.

    The system prompt is passed as the top-level `system=` kwarg, never as
    a message with role "system".
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)

        content = next(
            (block.text for block in response.content if block.type == "text"),
            "",
        )
        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Return the configured provider, created once per process.

    settings.llm_provider:
    - "openai_compatible" → OpenAICompatibleProvider (default)
    - "anthropic" → AnthropicProvider

    Raises:
        ValueError: If the provider name is unknown or no key is set.
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        elif settings.llm_provider == "anthropic":
            _provider = AnthropicProvider()
        else:
            raise ValueError(
                f"Unknown LLM_PROVIDER '{settings.llm_provider}'. "
                "Expected 'openai_compatible' or 'anthropic'"
            )
    return _provider
