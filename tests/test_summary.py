"""Tests for the AI business summary stage."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from urlaudit.audit.prompts import SUMMARY_SYSTEM_PROMPT
from urlaudit.audit.summary import (
    SUMMARY_MAX_TOKENS,
    SUMMARY_TEMPERATURE,
    build_summary_payload,
    generate_business_summary,
)
from urlaudit.audit.synthesis import build_violation, count_by_impact
from urlaudit.shared.llm_client import DryRunClient, LLMClient
from fakes import axe_violation


def _client(configured: bool = True, **completion) -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.is_configured.return_value = configured
    client.simple_completion = AsyncMock(**completion)
    return client


class TestBuildPayload:
    def test_includes_only_top_three(self) -> None:
        violations = [build_violation(axe_violation(f"rule-{i}", "minor")) for i in range(5)]
        payload = build_summary_payload("https://example.com", "Example Domain", 95, count_by_impact(violations), violations)
        assert payload["url"] == "https://example.com"
        assert payload["title"] == "Example Domain"
        assert payload["score"] == 95
        assert payload["issues"] == 5
        assert payload["minor"] == 5
        assert [t["rule"] for t in payload["top_issues"]] == ["rule-0", "rule-1", "rule-2"]


class TestGenerateBusinessSummary:
    @pytest.mark.asyncio
    async def test_no_client(self) -> None:
        assert json.loads(await generate_business_summary(None, {})) == {"error": "AI Key missing"}

    @pytest.mark.asyncio
    async def test_unconfigured_client_makes_no_call(self) -> None:
        client = _client(configured=False)
        result = await generate_business_summary(client, {"url": "https://example.com"})
        assert json.loads(result) == {"error": "AI Key missing"}
        client.simple_completion.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_error_is_absorbed(self) -> None:
        client = _client(side_effect=RuntimeError("503 from upstream"))
        result = await generate_business_summary(client, {"url": "https://example.com"})
        assert json.loads(result) == {"error": "AI Service Unavailable"}

    @pytest.mark.asyncio
    async def test_returns_model_content(self) -> None:
        body = '{"quickWins": ["Add alt text"]}'
        client = _client(return_value=body)
        payload = {"url": "https://example.com", "score": 93}

        result = await generate_business_summary(client, payload)

        assert result == body
        kwargs = client.simple_completion.call_args.kwargs
        assert kwargs["system"] == SUMMARY_SYSTEM_PROMPT
        assert json.loads(kwargs["user_message"]) == payload
        assert kwargs["temperature"] == SUMMARY_TEMPERATURE
        assert kwargs["max_tokens"] == SUMMARY_MAX_TOKENS
        assert kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_empty_content_becomes_empty_object(self) -> None:
        result = await generate_business_summary(_client(return_value=""), {})
        assert result == "{}"

    @pytest.mark.asyncio
    async def test_dry_run_client(self) -> None:
        result = json.loads(await generate_business_summary(DryRunClient(), {}))
        assert "websiteClassification" in result
        assert result["quickWins"]
