"""Async chat-completion wrapper with a provider strategy table.

Two providers speak the OpenAI wire format: OpenAI itself and the
OpenRouter gateway. ``resolve_provider`` picks one per call from the model
id and which keys are configured; call sites never branch on provider.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from openai import AsyncOpenAI

from urlaudit.schemas.config import Settings

logger = logging.getLogger(__name__)

TokensCallback = Callable[[int, int], None]
"""Called with (input_tokens, output_tokens) when a completion finishes."""

# Model ids served only through OpenRouter
OPENROUTER_MODELS: frozenset[str] = frozenset({
    "anthropic/claude-3.5-sonnet",
    "anthropic/claude-sonnet-4",
    "anthropic/claude-3-haiku",
    "google/gemini-2.0-flash-001",
    "google/gemini-pro-1.5",
    "meta-llama/llama-3.3-70b-instruct",
    "meta-llama/llama-3.1-405b-instruct",
    "deepseek/deepseek-chat-v3.1",
    "deepseek/deepseek-r1",
    "mistralai/mistral-large-2407",
})


@dataclass(frozen=True)
class ProviderConfig:
    """How to build a client for one provider."""

    name: str
    base_url: str | None
    api_key_setting: str  # attribute on Settings holding the key
    default_headers: dict[str, str] = field(default_factory=dict)

    def api_key(self, settings: Settings) -> str:
        return getattr(settings, self.api_key_setting)


PROVIDERS: dict[str, ProviderConfig] = {
    "openai": ProviderConfig(name="openai", base_url=None, api_key_setting="openai_api_key"),
    "openrouter": ProviderConfig(
        name="openrouter",
        base_url="https://openrouter.ai/api/v1",
        api_key_setting="openrouter_api_key",
        default_headers={"X-Title": "URL Accessibility Auditor"},
    ),
}


def is_openrouter_model(model: str) -> bool:
    return "/" in model or model in OPENROUTER_MODELS


def resolve_provider(model: str, settings: Settings) -> ProviderConfig:
    """Pick the provider for ``model``.

    OpenRouter ids go to OpenRouter only when its key is configured;
    everything else falls back to OpenAI.
    """
    if is_openrouter_model(model) and settings.openrouter_api_key:
        return PROVIDERS["openrouter"]
    return PROVIDERS["openai"]


class LLMClient:
    """Thin async wrapper around the OpenAI SDK.

    Clients are built lazily per provider and reused. Nothing is retried;
    callers treat any exception as "enrichment unavailable".
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._clients: dict[str, AsyncOpenAI] = {}

    def is_configured(self, model: str | None = None) -> bool:
        provider = resolve_provider(model or self.settings.ai_model, self.settings)
        return bool(provider.api_key(self.settings))

    def _client_for(self, provider: ProviderConfig) -> AsyncOpenAI:
        if provider.name not in self._clients:
            headers = dict(provider.default_headers)
            if provider.name == "openrouter":
                headers["HTTP-Referer"] = self.settings.app_url
            self._clients[provider.name] = AsyncOpenAI(
                api_key=provider.api_key(self.settings),
                base_url=provider.base_url,
                default_headers=headers or None,
            )
        return self._clients[provider.name]

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        """Single request/response with no tools.

        When ``json_mode`` is True (default), the API guarantees the
        response is valid JSON.
        """
        model = model or self.settings.ai_model
        provider = resolve_provider(model, self.settings)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug("Chat completion via %s (model=%s)", provider.name, model)
        response = await self._client_for(provider).chat.completions.create(**kwargs)
        usage = getattr(response, "usage", None)
        if on_tokens and usage:
            on_tokens(getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0))
        return response.choices[0].message.content or ""


# ======================================================================
# Dry-run mock client, zero API calls
# ======================================================================

_DRY_RUN_SUMMARY = json.dumps({
    "websiteClassification": {
        "type": "Corporate",
        "industry": "Technology",
        "targetAudience": "General",
        "complianceRequirements": "WCAG 2.1 AA",
    },
    "businessImpact": {
        "userExperience": "Some visitors using assistive technology will hit blockers.",
        "reach": "Fixing top issues widens the reachable audience.",
    },
    "industryContext": {
        "industryAverage": "Average (80)",
        "yourPerformance": "Average",
        "complianceRisk": "MEDIUM",
    },
    "quickWins": ["Add alt text to images", "Label form inputs"],
    "businessRecommendations": {
        "prioritize": "Resolve critical and serious issues first",
        "improvementPotential": "+10% Score",
        "expectedROI": "High",
    },
})


class DryRunClient:
    """Drop-in replacement for LLMClient that makes zero API calls."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings

    def is_configured(self, model: str | None = None) -> bool:
        return True

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        logger.info("[dry-run] Chat completion skipped (%d chars of input)", len(user_message))
        return _DRY_RUN_SUMMARY
