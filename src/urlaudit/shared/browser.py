"""Playwright browser manager: owns one Chromium instance per audit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import TracebackType
from typing import Any

from playwright.async_api import async_playwright, Browser, Page, Playwright

from urlaudit.schemas.config import BrowserSettings

logger = logging.getLogger(__name__)

# axe-core rule tags the scan is restricted to
AXE_TAGS: tuple[str, ...] = (
    "wcag2a",
    "wcag2aa",
    "wcag21a",
    "wcag21aa",
    "wcag22aa",
    "best-practice",
)


@dataclass
class ScanOutcome:
    """Raw scanner output for one page, before any scoring."""

    url: str
    title: str
    scan_started_at: datetime
    violations: list[dict[str, Any]] = field(default_factory=list)


class BrowserManager:
    """Manages a Playwright Chromium instance.

    The browser is closed on every exit path of the ``async with`` block,
    including exceptions raised inside it.

    Usage::

        async with BrowserManager() as bm:
            outcome = await bm.run_axe_scan("https://example.com")
    """

    def __init__(self, settings: BrowserSettings | None = None) -> None:
        self.settings = settings or BrowserSettings()
        self._pw: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "BrowserManager":
        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(
                headless=self.settings.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
        except BaseException:
            await self._pw.stop()
            self._pw = None
            raise
        logger.info("Browser launched")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if self._browser:
                await self._browser.close()
        finally:
            self._browser = None
            if self._pw:
                await self._pw.stop()
                self._pw = None
        logger.info("Browser closed")

    async def _new_page(self) -> Page:
        assert self._browser is not None, "BrowserManager not entered"
        page = await self._browser.new_page(ignore_https_errors=True)
        page.set_default_navigation_timeout(self.settings.default_navigation_timeout_ms)
        await page.set_viewport_size({
            "width": self.settings.viewport_width,
            "height": self.settings.viewport_height,
        })
        return page

    async def run_axe_scan(self, url: str) -> ScanOutcome:
        """Load ``url`` and run axe-core restricted to ``AXE_TAGS``.

        Waits for the load event only, not network idle.
        """
        page = await self._new_page()
        try:
            await page.goto(url, wait_until="load", timeout=self.settings.goto_timeout_ms)
            title = await page.title() or url
            scan_started_at = datetime.now(timezone.utc)

            await page.add_script_tag(url=self.settings.axe_script_url)
            results = await page.evaluate(
                """(tags) => axe.run(document, {runOnly: {type: 'tag', values: tags}})""",
                list(AXE_TAGS),
            )
            violations = results.get("violations", []) if isinstance(results, dict) else []
            logger.info("axe-core found %d violation(s) on %s", len(violations), url)
            return ScanOutcome(
                url=url,
                title=title,
                scan_started_at=scan_started_at,
                violations=violations,
            )
        finally:
            await page.close()
