"""Chromium lifecycle for a run.

BrowserManager owns one Playwright driver, one Chromium process and one
browser context. Scenarios share it and each takes its own page, so a
failing scenario can close its page without tearing down the browser.

Design Rationale:
    The manager is injected into extractors rather than created by them,
    so tests can substitute a mock and scenarios can share one browser.
"""

import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Self

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import GlobalConfig, get_config
from src.exceptions import BrowserInitializationError, NavigationError
from src.logger import get_logger

log = get_logger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]
VIEWPORT = {"width": 1440, "height": 900}


class BrowserManager:
    """Owns the Playwright driver, browser and context for one run.

    Attributes:
        config: GlobalConfig with browser settings and timeouts.
        user_agent: User agent picked from `config.user_agents` for this run.

    Example:
        async with BrowserManager.create() as browser:
            page = await browser.new_page()
            await browser.navigate(page, browser.config.constituents_url)
    """

    def __init__(self, config: GlobalConfig) -> None:
        self.config = config
        self.user_agent: str = random.choice(config.user_agents)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Launch a browser for the duration of the `async with` block.

        Raises:
            BrowserInitializationError: If Playwright or Chromium fails to start.
        """
        manager = cls(config or get_config())
        try:
            await manager._start()
            yield manager
        finally:
            await manager._close()

    async def _start(self) -> None:
        log.info("Launching Chromium", headless=self.config.headless, locale=self.config.locale)

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=LAUNCH_ARGS,
            )
            self._context = await self._browser.new_context(
                user_agent=self.user_agent,
                locale=self.config.locale,
                timezone_id=self.config.timezone_id,
                viewport=VIEWPORT,
            )
        except Exception as exc:
            await self._close()
            raise BrowserInitializationError(reason=str(exc), browser_type="chromium") from exc

        log.info("Chromium ready", user_agent=self.user_agent)

    def _require_context(self) -> BrowserContext:
        if self._context is None:
            raise BrowserInitializationError(
                reason="no browser context; use BrowserManager.create()",
                browser_type="chromium",
            )
        return self._context

    async def new_page(self) -> Page:
        """Open a page whose default action and navigation timeouts come from config.

        The caller owns the page and must close it.

        Raises:
            BrowserInitializationError: If called outside `create()`.
        """
        page = await self._require_context().new_page()
        page.set_default_timeout(self.config.request_timeout_ms)
        page.set_default_navigation_timeout(self.config.request_timeout_ms)
        return page

    async def navigate(
        self,
        page: Page,
        url: str,
        wait_until: str = "domcontentloaded",
    ) -> None:
        """Load `url` in `page` and check the HTTP status of the document.

        Raises:
            NavigationError: On timeout, driver error, missing response or status >= 400.
        """
        log.debug("Loading page", url=url, wait_until=wait_until)

        try:
            response = await page.goto(url, wait_until=wait_until)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                url=url,
                reason=f"Navigation timeout after {self.config.request_timeout_ms}ms",
            ) from exc
        except Exception as exc:
            raise NavigationError(url=url, reason=str(exc)) from exc

        if response is None:
            raise NavigationError(url=url, reason="No response received")
        if response.status >= 400:
            raise NavigationError(
                url=url, reason=f"HTTP {response.status}", status_code=response.status
            )

        log.info("Page loaded", url=url, status_code=response.status)

    async def _close(self) -> None:
        """Release context, browser and driver, newest first.

        A failure closing one resource is logged and the rest are still closed.
        """
        closers = [
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ]
        self._context = self._browser = self._playwright = None

        for resource, close in closers:
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                log.warning("Failed to close browser resource", resource=resource, error=str(exc))

        log.debug("Browser resources released")

    @property
    def is_initialized(self) -> bool:
        return None not in (self._playwright, self._browser, self._context)
