"""
Thin adapter layer over LLM provider SDKs (OpenAI, Anthropic).

Each provider exposes the same ``generate`` interface so the assistant
service never imports provider-specific code.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from config.settings import config

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """Common interface that every concrete provider implements."""

    default_model: str

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        ...

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.3,
        model: str | None = None,
        max_tokens: int = 600,
        output_schema: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any] | str:
        """
        Run a single-turn completion.

        With ``output_schema`` the model is asked for JSON and the parsed
        object is returned; unparseable output comes back as ``{"raw": text}``.
        """
        if output_schema is not None:
            prompt += (
                f"\n\nRespond ONLY with valid JSON matching this schema:\n"
                f"{json.dumps(output_schema, indent=2)}"
            )

        text = await self.complete(
            prompt,
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=output_schema is not None,
        )

        if output_schema is None:
            return text
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.warning("LLM did not return valid JSON; returning raw text")
            return {"raw": text}


# ═══════════════════════════════════════════════════════════════════════════════
# OpenAI
# ═══════════════════════════════════════════════════════════════════════════════


class OpenAIProvider(BaseLLMProvider):
    def __init__(self, api_key: str, default_model: str = "gpt-4o"):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
        return response.choices[0].message.content or ""


# ═══════════════════════════════════════════════════════════════════════════════
# Anthropic
# ═══════════════════════════════════════════════════════════════════════════════


class AnthropicProvider(BaseLLMProvider):
    def __init__(self, api_key: str, default_model: str = "claude-3-5-sonnet-20241022"):
        from anthropic import AsyncAnthropic

        self.client = AsyncAnthropic(api_key=api_key)
        self.default_model = default_model

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        response = await self.client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text


# ═══════════════════════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════════════════════

_provider_cache: Dict[str, BaseLLMProvider] = {}


def _api_key(provider_name: str) -> str:
    if provider_name == "openai":
        return config.openai_api_key
    if provider_name == "anthropic":
        return config.anthropic_api_key or ""
    raise ValueError(f"Unsupported LLM provider: {provider_name}")


def llm_configured(provider_name: str | None = None) -> bool:
    """True when an API key exists for the (default) provider."""
    return bool(_api_key(provider_name or config.ai_provider))


def get_llm_provider(
    provider_name: str | None = None,
    *,
    api_key: str | None = None,
    default_model: str | None = None,
) -> BaseLLMProvider:
    """
    Return (and cache) an LLM provider instance.

    Parameters
    ----------
    provider_name : "openai" | "anthropic"; defaults to ``config.ai_provider``.
    api_key       : explicit key; if omitted, read from config.
    default_model : override the default model; ``config.ai_model`` is used
                    for the configured provider.
    """
    provider_name = provider_name or config.ai_provider
    if default_model is None and provider_name == config.ai_provider:
        default_model = config.ai_model

    cache_key = f"{provider_name}:{default_model or 'default'}"
    if cache_key in _provider_cache:
        return _provider_cache[cache_key]

    key = api_key or _api_key(provider_name)
    if provider_name == "openai":
        instance = OpenAIProvider(api_key=key, default_model=default_model or "gpt-4o")
    else:
        instance = AnthropicProvider(
            api_key=key,
            default_model=default_model or "claude-3-5-sonnet-20241022",
        )

    _provider_cache[cache_key] = instance
    return instance
