"""Scan execution: one browser, one page, one axe-core run."""

from __future__ import annotations

import logging
from typing import Callable

from urlaudit.schemas.config import BrowserSettings
from urlaudit.shared.browser import BrowserManager, ScanOutcome

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[BrowserSettings], BrowserManager]
"""Builds an un-entered BrowserManager; swapped out in tests."""


async def scan_url(
    url: str,
    settings: BrowserSettings,
    browser_factory: BrowserFactory = BrowserManager,
) -> ScanOutcome:
    """Run a single accessibility scan. Nothing is retried; errors propagate."""
    logger.debug("Scanning %s (headless=%s)", url, settings.headless)
    async with browser_factory(settings) as browser:
        return await browser.run_axe_scan(url)
