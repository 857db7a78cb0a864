"""Test doubles for the browser and raw axe-core output."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from urlaudit.shared.browser import ScanOutcome


def axe_violation(
    rule: str,
    impact: str | None = "serious",
    tags: list[str] | None = None,
    target: list[str] | None = None,
) -> dict[str, Any]:
    """A raw axe-core violation dict with one node."""
    raw: dict[str, Any] = {
        "id": rule,
        "description": f"{rule} description",
        "help": f"Fix {rule}",
        "helpUrl": f"https://dequeuniversity.com/rules/axe/4.10/{rule}",
        "tags": tags if tags is not None else ["wcag2a", "wcag111"],
        "nodes": [{"target": target or [f"#{rule}"], "html": f"<div id=\"{rule}\"></div>"}],
    }
    if impact is not None:
        raw["impact"] = impact
    return raw


class FakeBrowser:
    """Stands in for BrowserManager: counts launches and returns canned results."""

    def __init__(
        self,
        violations: list[dict[str, Any]] | None = None,
        *,
        title: str = "Example Domain",
        error: Exception | None = None,
    ) -> None:
        self.violations = violations or []
        self.title = title
        self.error = error
        self.launches = 0
        self.closes = 0
        self.scanned: list[str] = []

    def __call__(self, settings: Any) -> "FakeBrowser":
        self.launches += 1
        return self

    async def __aenter__(self) -> "FakeBrowser":
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closes += 1

    async def run_axe_scan(self, url: str) -> ScanOutcome:
        self.scanned.append(url)
        if self.error is not None:
            raise self.error
        return ScanOutcome(
            url=url,
            title=self.title,
            scan_started_at=datetime.now(timezone.utc),
            violations=list(self.violations),
        )
