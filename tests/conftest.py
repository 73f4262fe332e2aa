"""Pytest configuration and shared fixtures for the IndexLens test suite.

This module provides hermetic test infrastructure with the following guarantees:
- No external network requests (Playwright and HTTP are faked)
- Isolated state (fresh GlobalConfig and temporary directories per test)

Design Rationale:
    The listing is driven through a small in-memory fake of the Playwright
    Page rather than nested MagicMocks: pagination and sorting need state
    (which page is shown, what was clicked) that mocks express poorly.
"""

import asyncio
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pytest_mock import MockerFixture

from config.settings import GlobalConfig

Row = tuple[str, str]


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Overrides the lru_cache singleton to prevent state leakage between tests.
    Uses tmp_path for all file operations to avoid polluting the filesystem.
    """
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    results_dir = tmp_path / "results"
    output_dir = tmp_path / "output"
    log_dir.mkdir()
    output_dir.mkdir()

    test_env = {
        "APP_NAME": "IndexLens-Test",
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "HEADLESS": "true",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "CONSTITUENTS_URL": "https://listing.example.com/constituents/table",
        "FINANCE_API_URL": "https://chart.example.com/v8/finance/chart",
        "REQUEST_TIMEOUT_MS": "5000",
        "READINESS_TIMEOUT_MS": "200",
        "OVERLAY_TIMEOUT_MS": "200",
        "RERENDER_TIMEOUT_MS": "200",
        "RERENDER_POLL_MS": "10",
        "PAGINATION_LIMIT": "0",
        "RESULTS_DIR": str(results_dir),
        "OUTPUT_DIR": str(output_dir),
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    get_config.cache_clear()


class FakeLocator:
    """Just enough of playwright's Locator for the listing page object.

    `wait_for` resolves once the element is attached and visible. An element
    given `appear_after` seconds becomes visible that long after the wait
    starts, and only if the wait's timeout allows it.
    """

    def __init__(
        self,
        texts: Iterable[str] | Callable[[], Iterable[str]] = (),
        count: int | None = None,
        visible: bool = True,
        on_click: Callable[[], Any] | None = None,
        appear_after: float | None = None,
    ) -> None:
        self._texts = texts
        self._count = count
        self._visible = visible
        self._appear_after = appear_after
        self.click = AsyncMock(side_effect=on_click)
        self.wait_for = AsyncMock(side_effect=self._wait_visible)

    async def _wait_visible(self, state: str = "visible", timeout: float | None = None) -> None:
        if self._appear_after is not None:
            if timeout is not None and self._appear_after * 1000 > timeout:
                raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
            await asyncio.sleep(self._appear_after)
            self._count, self._visible = 1, True
        if await self.count() == 0 or not self._visible:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")

    async def all_text_contents(self) -> list[str]:
        texts = self._texts() if callable(self._texts) else self._texts
        return list(texts)

    async def count(self) -> int:
        if self._count is not None:
            return self._count
        return len(await self.all_text_contents())

    async def is_visible(self) -> bool:
        return self._visible

    @property
    def first(self) -> "FakeLocator":
        return self

    def locator(self, selector: str) -> "FakeLocator":
        return self


class FakeListingPage:
    """In-memory constituents listing with pagination and sort controls.

    Rows are given per page as (name, market cap text) pairs, already in the
    order the site would render them after sorting. Every click is recorded
    in `clicked` by its label.

    Attributes:
        current_page: 1-based number of the page currently rendered.
        clicked: Labels of every clicked control, in order.
    """

    def __init__(
        self,
        pages: list[list[Row]],
        cookie_overlay: bool = True,
        cookie_delay: float | None = None,
        negative_cell: bool = True,
        pagination_labels: list[str] | None = None,
        missing_links: Iterable[int] = (),
        failing_clicks: Iterable[str] = (),
        url: str = "https://listing.example.com/constituents/table",
    ) -> None:
        self.pages = pages
        self.current_page = 1
        self.cookie_overlay = cookie_overlay
        self.negative_cell = negative_cell
        self.pagination_labels = pagination_labels
        self.missing_links = set(missing_links)
        self.failing_clicks = set(failing_clicks)
        self.url = url
        self.clicked: list[str] = []
        self.wait_for_function = AsyncMock()
        self.close = AsyncMock()
        self.cookie_button = FakeLocator(
            count=1 if cookie_overlay and cookie_delay is None else 0,
            on_click=self._clicker("cookies"),
            appear_after=cookie_delay if cookie_overlay else None,
        )

    @property
    def rows(self) -> list[Row]:
        return self.pages[self.current_page - 1] if self.pages else []

    def _clicker(self, label: str, then: Callable[[], None] | None = None) -> Callable[[], None]:
        def click() -> None:
            if label in self.failing_clicks:
                raise PlaywrightTimeoutError(f"Timeout 200ms exceeded waiting for {label}")
            self.clicked.append(label)
            if then is not None:
                then()

        return click

    def _show_page(self, number: int) -> Callable[[], None]:
        def show() -> None:
            self.current_page = number

        return show

    def locator(self, selector: str) -> FakeLocator:
        if "instrument-name" in selector:
            return FakeLocator(lambda: [name for name, _ in self.rows])
        if "marketcapitalization" in selector:
            return FakeLocator(lambda: [cap for _, cap in self.rows])
        return FakeLocator(count=1 if self.negative_cell else 0)

    def get_by_role(self, role: str, name: str | None = None, exact: bool | None = None) -> Any:
        if role == "button":
            return self.cookie_button if name else FakeLocator()

        if role == "link" and name is None:
            labels = self.pagination_labels
            if labels is None:
                labels = ["Previous", *(str(n) for n in range(1, len(self.pages) + 1)), "Next"]
            return FakeLocator(labels)

        if role == "link":
            number = int(name)
            present = 1 <= number <= len(self.pages) and number not in self.missing_links
            return FakeLocator(
                count=1 if present else 0,
                on_click=self._clicker(name, self._show_page(number)),
            )

        listitem = MagicMock()
        listitem.filter = lambda has_text: FakeLocator(on_click=self._clicker(has_text))
        return listitem

    def get_by_text(self, text: str, exact: bool | None = None) -> FakeLocator:
        return FakeLocator(on_click=self._clicker(text))


@pytest.fixture
def listing_page_factory() -> Callable[..., FakeListingPage]:
    """Factory for FakeListingPage instances.

    Example:
        def test_something(listing_page_factory):
            page = listing_page_factory([[("Shell", "190,000.5")]])
    """

    def _create(pages: list[list[Row]], **kwargs: Any) -> FakeListingPage:
        return FakeListingPage(pages, **kwargs)

    return _create


@pytest.fixture
def browser_factory(mocker: MockerFixture) -> Callable[[FakeListingPage], MagicMock]:
    """Factory for a BrowserManager stand-in handing out the given page(s).

    Each `new_page()` call returns the next page given; the last one repeats.
    """

    def _create(*pages: FakeListingPage) -> MagicMock:
        queue = list(pages)

        async def new_page() -> FakeListingPage:
            return queue.pop(0) if len(queue) > 1 else queue[0]

        browser = mocker.MagicMock()
        browser.new_page = mocker.AsyncMock(side_effect=new_page)
        browser.navigate = mocker.AsyncMock()
        return browser

    return _create


def make_rows(count: int, prefix: str = "Company", start_cap: float = 100.0) -> list[Row]:
    """Rows named `<prefix> 1..count` with market caps decreasing from `start_cap`."""
    return [(f" {prefix} {i} ", f"{start_cap - i:,.2f}") for i in range(1, count + 1)]


@pytest.fixture
def mock_playwright(mocker: MockerFixture) -> MagicMock:
    """Provide a mocked Playwright instance with browser and context."""
    context = mocker.MagicMock()
    context.new_page = mocker.AsyncMock()
    context.close = mocker.AsyncMock()

    browser = mocker.MagicMock()
    browser.new_context = mocker.AsyncMock(return_value=context)
    browser.close = mocker.AsyncMock()

    playwright = mocker.MagicMock()
    playwright.chromium.launch = mocker.AsyncMock(return_value=browser)
    playwright.stop = mocker.AsyncMock()
    return playwright


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
