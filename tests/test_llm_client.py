"""Tests for the LLM client: provider resolution and the completion call."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from urlaudit.schemas.config import Settings
from urlaudit.shared.llm_client import (
    PROVIDERS,
    LLMClient,
    is_openrouter_model,
    resolve_provider,
)


def _make_text_response(text: str, prompt_tokens: int = 12, completion_tokens: int = 34):
    message = SimpleNamespace(content=text, tool_calls=None)
    usage = SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _client_with_mock(settings: Settings, provider: str = "openai") -> tuple[LLMClient, AsyncMock]:
    client = LLMClient(settings)
    sdk = AsyncMock()
    sdk.chat.completions.create = AsyncMock(return_value=_make_text_response('{"ok": true}'))
    client._clients[provider] = sdk
    return client, sdk


class TestResolveProvider:
    def test_plain_model_uses_openai(self) -> None:
        settings = Settings(openai_api_key="sk-o", openrouter_api_key="sk-r")
        assert resolve_provider("gpt-4o", settings) is PROVIDERS["openai"]

    def test_openrouter_model_with_key(self) -> None:
        settings = Settings(openrouter_api_key="sk-r")
        assert resolve_provider("anthropic/claude-3.5-sonnet", settings) is PROVIDERS["openrouter"]

    def test_openrouter_model_without_key_falls_back(self) -> None:
        settings = Settings(openai_api_key="sk-o")
        assert resolve_provider("anthropic/claude-3.5-sonnet", settings) is PROVIDERS["openai"]

    def test_slash_means_openrouter(self) -> None:
        assert is_openrouter_model("some-vendor/some-model")
        assert not is_openrouter_model("gpt-4o-mini")


class TestIsConfigured:
    def test_missing_key(self) -> None:
        assert not LLMClient(Settings()).is_configured()

    def test_key_of_resolved_provider(self) -> None:
        settings = Settings(openrouter_api_key="sk-r", ai_model="deepseek/deepseek-r1")
        client = LLMClient(settings)
        assert client.is_configured()
        assert not client.is_configured("gpt-4o")


class TestSimpleCompletion:
    @pytest.mark.asyncio
    async def test_returns_text(self) -> None:
        client, sdk = _client_with_mock(Settings(openai_api_key="sk-o"))
        result = await client.simple_completion(system="sys", user_message="hi")
        assert result == '{"ok": true}'

        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "temperature" not in kwargs

    @pytest.mark.asyncio
    async def test_passes_sampling_options(self) -> None:
        client, sdk = _client_with_mock(Settings(openai_api_key="sk-o"))
        await client.simple_completion(
            system="s", user_message="u", temperature=0.3, max_tokens=1000, json_mode=False,
        )
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 1000
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_routes_to_openrouter(self) -> None:
        settings = Settings(openrouter_api_key="sk-r")
        client, sdk = _client_with_mock(settings, provider="openrouter")
        await client.simple_completion(system="s", user_message="u", model="deepseek/deepseek-chat-v3.1")
        assert sdk.chat.completions.create.call_args.kwargs["model"] == "deepseek/deepseek-chat-v3.1"

    @pytest.mark.asyncio
    async def test_reports_tokens(self) -> None:
        client, _ = _client_with_mock(Settings(openai_api_key="sk-o"))
        seen: list[tuple[int, int]] = []
        await client.simple_completion(system="s", user_message="u", on_tokens=lambda i, o: seen.append((i, o)))
        assert seen == [(12, 34)]

    @pytest.mark.asyncio
    async def test_errors_propagate(self) -> None:
        client, sdk = _client_with_mock(Settings(openai_api_key="sk-o"))
        sdk.chat.completions.create.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError, match="boom"):
            await client.simple_completion(system="s", user_message="u")
        assert sdk.chat.completions.create.await_count == 1

    def test_openrouter_client_headers(self) -> None:
        settings = Settings(openrouter_api_key="sk-r", app_url="https://audit.example")
        client = LLMClient(settings)
        sdk = client._client_for(PROVIDERS["openrouter"])
        assert client._client_for(PROVIDERS["openrouter"]) is sdk
        assert str(sdk.base_url).startswith("https://openrouter.ai/api/v1")
        assert sdk.default_headers["HTTP-Referer"] == "https://audit.example"
        assert sdk.default_headers["X-Title"] == "URL Accessibility Auditor"
