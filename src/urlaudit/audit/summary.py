"""Best-effort AI business summary for a completed scan."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from urlaudit.audit.prompts import SUMMARY_SYSTEM_PROMPT
from urlaudit.audit.synthesis import SeverityCounts
from urlaudit.schemas.audit import Violation

logger = logging.getLogger(__name__)

SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 1000
TOP_VIOLATIONS = 3


class CompletionClient(Protocol):
    def is_configured(self, model: str | None = None) -> bool: ...

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = True,
        on_tokens: Any | None = None,
    ) -> str: ...


def build_summary_payload(
    url: str,
    title: str,
    score: int,
    counts: SeverityCounts,
    violations: list[Violation],
) -> dict[str, Any]:
    """Slim prompt payload: counts plus the first few violations only."""
    return {
        "url": url,
        "title": title,
        "score": score,
        "issues": counts.total,
        "critical": counts.critical,
        "serious": counts.serious,
        "moderate": counts.moderate,
        "minor": counts.minor,
        "top_issues": [
            {
                "rule": v.violation_id,
                "impact": v.impact,
                "description": v.description,
                "wcag_level": v.wcag_level,
                "selector": v.selector,
            }
            for v in violations[:TOP_VIOLATIONS]
        ],
    }


async def generate_business_summary(
    client: CompletionClient | None,
    payload: dict[str, Any],
) -> str:
    """Return the model's JSON summary, or a ``{"error": ...}`` JSON string.

    Never raises; the audit is still valid without a summary.
    """
    if client is None or not client.is_configured():
        return json.dumps({"error": "AI Key missing"})

    try:
        content = await client.simple_completion(
            system=SUMMARY_SYSTEM_PROMPT,
            user_message=json.dumps(payload),
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
            json_mode=True,
        )
    except Exception as exc:
        logger.warning("AI summary failed: %s", exc)
        return json.dumps({"error": "AI Service Unavailable"})

    return content or "{}"
