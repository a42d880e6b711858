"""
Playwright Render Engine

Launches (or connects to) a Chromium browser and hands out a BrowserHandle.
The handle owns both the Playwright driver and the browser, so closing it
releases the whole process.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]


class BrowserHandle:
    """Exclusive ownership of one running browser"""

    def __init__(self, playwright: Playwright, browser: Browser):
        self._playwright = playwright
        self._browser = browser

    def is_connected(self) -> bool:
        return self._browser.is_connected()

    async def new_context(self, **options: Any) -> BrowserContext:
        """Open an isolated (incognito-like) context."""
        return await self._browser.new_context(**options)

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


class PlaywrightEngine:
    """
    Chromium launcher

    With ws_endpoint set, connects to an already running Chromium over CDP
    instead of starting a local process.
    """

    def __init__(
        self,
        ws_endpoint: Optional[str] = None,
        headless: bool = True,
        args: Optional[List[str]] = None,
    ):
        self.ws_endpoint = ws_endpoint
        self.headless = headless
        self.args = args if args is not None else list(CHROMIUM_ARGS)

    async def launch(self) -> BrowserHandle:
        playwright = await async_playwright().start()
        try:
            if self.ws_endpoint:
                logger.info(f"[Engine] Connecting to remote browser: {self.ws_endpoint}")
                browser = await playwright.chromium.connect_over_cdp(self.ws_endpoint)
            else:
                browser = await playwright.chromium.launch(headless=self.headless, args=self.args)
        except Exception:
            await playwright.stop()
            raise

        logger.info(f"[Engine] Browser ready (version {browser.version})")
        return BrowserHandle(playwright, browser)
