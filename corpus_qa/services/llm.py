# =============================================================================
# Multi-Provider LLM Abstraction: Pluggable Generation Backend
# =============================================================================
#
# Provides a common interface for LLM completions, with concrete
# implementations for Google Gemini, Anthropic (Claude) and
# OpenAI-compatible APIs (DeepSeek, Qwen, GLM-5, OpenAI itself).
#
# A request carries a model identifier, a system instruction plus
# messages, and optionally a strict output schema (a Pydantic model)
# together with generation parameters: temperature, an output-token cap
# and a reasoning-budget hint. Each provider maps the schema onto its own
# structured-output mechanism and always hands back the reply as text;
# callers parse and validate it.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── GeminiProvider           - response_schema + thinking_config
#   ├── AnthropicProvider        - forced tool call carries the schema
#   ├── OpenAICompatibleProvider - response_format json_schema
#   ├── parse_structured()       - text → validated Pydantic model
#   └── get_llm_provider()       - Singleton factory, reads from config
#
# Retries are NOT handled here. Every caller goes through
# services/resilience.py, which wraps any provider.
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from corpus_qa.config import settings
from corpus_qa.exceptions import ConfigurationError, MalformedResponse

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    For schema-constrained requests `content` holds the JSON document;
    otherwise it is the plain generated text.
    """

    content: str           # The generated text (or JSON)
    model: str             # Model identifier (e.g., "gemini-2.5-flash")
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the LLM provider interface.

    ResilientCaller implements the same method, so any component can be
    handed either a bare provider or a wrapped one.
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_schema: type[BaseModel] | None = None,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation messages as dicts with "role" and "content".
                Roles: "user", "assistant" (no "system"; use the system param).
            system: System instruction for the model.
            temperature: Override sampling temperature (default from config).
            max_tokens: Override max output tokens (default from config).
            model: Override the model identifier (default from config).
            response_schema: Pydantic model the reply must conform to. When
                set, `LLMResponse.content` is a JSON document.
            thinking_budget: Reasoning-token hint. Providers without an
                equivalent ignore it.

        Returns:
            LLMResponse with generated text and usage metrics.
        """
        ...


# ---------------------------------------------------------------------------
# Structured Output Parsing
# ---------------------------------------------------------------------------


def parse_structured(response: LLMResponse, schema: type[SchemaT]) -> SchemaT:
    """
    Validate a schema-constrained reply.

    Tolerates a markdown code fence around the JSON, which some
    OpenAI-compatible backends add despite the response format.

    Raises:
        MalformedResponse: The content is not valid JSON for `schema`.
    """
    text = response.content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()

    try:
        return schema.model_validate_json(text)
    except ValidationError as e:
        raise MalformedResponse(
            f"Reply does not match {schema.__name__}: {e.error_count()} error(s)",
            raw_response=response.content,
        ) from e


def _schema_name(schema: type[BaseModel]) -> str:
    return schema.__name__.lower()


# ---------------------------------------------------------------------------
# Implementation 1: Google Gemini
# ---------------------------------------------------------------------------


class GeminiProvider:
    """
    Google Gemini provider using the google-genai SDK.

    Structured output uses `response_mime_type="application/json"` with the
    Pydantic model passed as `response_schema`. The reasoning budget maps
    onto `thinking_config`, which reserves output tokens for the answer
    when `max_output_tokens` is small.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from google import genai

        resolved_key = api_key or settings.llm_api_key or settings.gemini_api_key
        if not resolved_key:
            raise ConfigurationError(
                "No Gemini API key configured. Set LLM_API_KEY or "
                "GEMINI_API_KEY in .env"
            )

        self._client = genai.Client(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized GeminiProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_schema: type[BaseModel] | None = None,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Gemini."""
        from google.genai import types

        # Gemini names the assistant role "model"
        contents = [
            types.Content(
                role="model" if m["role"] == "assistant" else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in messages
        ]

        config_kwargs: dict = {
            "temperature": self._temperature if temperature is None else temperature,
            "max_output_tokens": max_tokens or self._max_tokens,
        }
        if system:
            config_kwargs["system_instruction"] = system
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = response_schema
        if thinking_budget is not None:
            config_kwargs["thinking_config"] = types.ThinkingConfig(
                thinking_budget=thinking_budget,
            )

        resolved_model = model or self._model
        response = await self._client.aio.models.generate_content(
            model=resolved_model,
            contents=contents,
            config=types.GenerateContentConfig(**config_kwargs),
        )

        usage = response.usage_metadata
        return LLMResponse(
            content=(response.text or "").strip(),
            model=resolved_model,
            input_tokens=(usage.prompt_token_count or 0) if usage else 0,
            output_tokens=(usage.candidates_token_count or 0) if usage else 0,
        )


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg, NOT as a message with role "system".

    Structured output is requested by declaring a single tool whose
    `input_schema` is the Pydantic schema and forcing the model to call
    it; the tool input is returned as JSON text. Extended thinking cannot
    be combined with a forced tool call, so `thinking_budget` is ignored.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ConfigurationError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized AnthropicProvider (model=%s)", self._model
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_schema: type[BaseModel] | None = None,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        kwargs: dict = {
            "model": model or self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }

        # Anthropic: system prompt is a top-level kwarg, not a message
        if system:
            kwargs["system"] = system

        if response_schema is not None:
            tool_name = _schema_name(response_schema)
            kwargs["tools"] = [{
                "name": tool_name,
                "description": "Record the structured response.",
                "input_schema": response_schema.model_json_schema(),
            }]
            kwargs["tool_choice"] = {"type": "tool", "name": tool_name}

        response = await self._client.messages.create(**kwargs)

        content = ""
        for block in response.content:
            if response_schema is not None and block.type == "tool_use":
                content = json.dumps(block.input)
                break
            if block.type == "text":
                content = block.text
                break

        return LLMResponse(
            content=content.strip(),
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Implementation 3: OpenAI-Compatible (DeepSeek, Qwen, GLM-5, etc.)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    OpenAI-compatible provider for any API that follows the OpenAI spec.

    Switching providers is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_API_KEY=your-key
        LLM_MODEL=deepseek-chat

    Structured output uses `response_format={"type": "json_schema", ...}`
    in strict mode, which requires `additionalProperties: false`.
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
            raise ConfigurationError(
                "No API key configured for OpenAI-compatible provider. "
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
        model: str | None = None,
        response_schema: type[BaseModel] | None = None,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        kwargs: dict = {
            "model": model or self._model,
            "messages": all_messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if response_schema is not None:
            schema = response_schema.model_json_schema()
            schema["additionalProperties"] = False
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": _schema_name(response_schema),
                    "schema": schema,
                    "strict": True,
                },
            }

        response = await self._client.chat.completions.create(**kwargs)

        content = response.choices[0].message.content or ""

        # Token counts: OpenAI uses different field names than Anthropic
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        return LLMResponse(
            content=content.strip(),
            model=response.model or kwargs["model"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_PROVIDERS = {
    "gemini": GeminiProvider,
    "anthropic": AnthropicProvider,
    "openai_compatible": OpenAICompatibleProvider,
}

# Lazy singleton, avoids re-creating client on every request
_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    Factory that returns the configured (unwrapped) LLM provider.

    Reads `llm_provider` from settings:
    - "gemini" → GeminiProvider
    - "anthropic" → AnthropicProvider (Claude)
    - "openai_compatible" → OpenAICompatibleProvider (DeepSeek, Qwen, etc.)

    Raises:
        ConfigurationError: Unknown provider name or missing API key.
    """
    global _provider
    if _provider is None:
        provider_cls = _PROVIDERS.get(settings.llm_provider)
        if provider_cls is None:
            raise ConfigurationError(
                f"Unknown LLM provider '{settings.llm_provider}'. "
                f"Supported: {sorted(_PROVIDERS)}"
            )
        _provider = provider_cls()
    return _provider
