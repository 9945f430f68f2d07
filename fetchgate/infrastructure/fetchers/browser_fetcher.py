"""Fallback fetch strategy: Playwright headless browser.

Used only after the httpx strategy exhausted its retries. Renders the page
in headless Chromium, waits for the network to go idle and returns the
rendered HTML with a marker header so callers can tell the paths apart.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fetchgate.domain.interfaces.fetch_strategy import FetchStrategy
from fetchgate.domain.models.common import FetchTarget
from fetchgate.domain.models.errors import UpstreamStatusError, UpstreamUnavailableError
from fetchgate.domain.models.fetch import FetchResponse

logger = logging.getLogger(__name__)

FALLBACK_MARKER_HEADER = "x-playwright-fallback"


class PlaywrightFetchStrategy(FetchStrategy):
    """Rendered-browser strategy. The browser is launched on first use."""

    name = "playwright"

    LAUNCH_ARGS = [
        "--no-sandbox",
        "--disable-dev-shm-usage",
    ]

    def __init__(self, user_agent: Optional[str] = None, wait_until: str = "networkidle"):
        """Initializes the strategy.

        Args:
            user_agent: Optional User-Agent override for the browser context.
            wait_until: Playwright load state awaited before reading content.
        """
        self.user_agent = user_agent
        self.wait_until = wait_until
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._init_lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._init_lock:
            if self._browser is None:
                playwright = await async_playwright().start()
                try:
                    browser = await playwright.chromium.launch(headless=True, args=self.LAUNCH_ARGS)
                except BaseException:
                    # Covers cancellation by the fallback timeout during a cold start
                    await playwright.stop()
                    raise
                self._playwright, self._browser = playwright, browser
                logger.info("Playwright browser initialized for fallback fetching")
            return self._browser

    async def fetch(self, target: FetchTarget, timeout: float) -> FetchResponse:
        browser = await self._ensure_browser()
        context = await browser.new_context(user_agent=self.user_agent)
        try:
            page = await context.new_page()
            try:
                response = await page.goto(target.url, wait_until=self.wait_until, timeout=timeout * 1000)
            except PlaywrightTimeoutError as e:
                raise UpstreamUnavailableError(f"Page render timed out after {timeout:g}s") from e
            except PlaywrightError as e:
                raise UpstreamUnavailableError(f"Browser navigation failed: {e.message}") from e

            status = response.status if response is not None else 200
            if status >= 400:
                raise UpstreamStatusError(status)

            html = await page.content()
            return FetchResponse(
                status_code=status,
                body=html.encode("utf-8"),
                headers={
                    "content-type": "text/html; charset=utf-8",
                    FALLBACK_MARKER_HEADER: "1",
                },
            )
        finally:
            await context.close()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
