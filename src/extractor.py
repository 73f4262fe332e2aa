"""Listing extraction base implementing the Strategy Pattern.

This module provides the page-object base shared by every extractor that
works on the constituents listing: opening the page, dismissing the cookie
overlay, applying a sort and waiting for the table to settle. Concrete
strategies only decide which rows to collect once the listing is sorted.

Design Rationale:
    Sorting and paging re-render the listing asynchronously with no
    completion event. Instead of sleeping a fixed interval, the base
    snapshots the first row label before a click and waits, bounded, until
    the rendered first row differs. The ascending percentage sort keeps
    its stronger signal: a negative percentage cell becoming visible.
"""

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import ClassVar, Generic, TypeVar

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import BaseModel

from config.settings import GlobalConfig, get_config
from src.browser import BrowserManager
from src.exceptions import ReadinessTimeoutError, SelectorNotFoundError
from src.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

FIRST_ROW_CHANGED_JS = """
({ selector, previous }) => {
    const first = document.querySelector(selector);
    return first !== null && first.textContent.trim() !== previous;
}
"""


class SortCommand(StrEnum):
    """Sort orders the listing supports."""

    PERCENT_CHANGE_DESC = "percent_change_desc"
    PERCENT_CHANGE_ASC = "percent_change_asc"
    MARKET_CAP_DESC = "market_cap_desc"


class ExtractionResult(BaseModel, Generic[T]):
    """Container for extraction results with metadata.

    Attributes:
        items: Extracted items, in page-then-row order.
        sort: Sort command applied before reading.
        pages_scraped: Number of listing pages read.
        rows_seen: Number of rows paired across all pages read.
        source_url: Listing URL.
    """

    items: list[T]
    sort: SortCommand
    pages_scraped: int
    rows_seen: int
    source_url: str

    @property
    def rows_dropped(self) -> int:
        """Rows read but not returned (filtered or unparsable)."""
        return max(self.rows_seen - len(self.items), 0)


class ConstituentsPage(ABC, Generic[T]):
    """Abstract page object over the sortable, paginated constituents listing.

    Subclasses implement `collect()` to read items from a sorted listing.

    Attributes:
        config: GlobalConfig instance for selectors and timing bounds.
        browser: BrowserManager supplying pages.
        supported_sorts: Sort commands this extractor accepts.
    """

    supported_sorts: ClassVar[frozenset[SortCommand]] = frozenset(SortCommand)

    def __init__(
        self,
        browser: BrowserManager,
        config: GlobalConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.browser = browser
        self._pages_scraped: int = 0
        self._rows_seen: int = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Return human-readable name for logging."""
        ...

    @abstractmethod
    async def collect(self, page: Page) -> list[T]:
        """Read items from the listing after the sort has been applied.

        Implementations must call `record_page()` once per page read.
        """
        ...

    async def extract(self, command: SortCommand) -> ExtractionResult[T]:
        """Open a fresh listing page, sort it and collect items.

        Args:
            command: Sort order to apply before reading.

        Returns:
            ExtractionResult with the collected items and read statistics.
        """
        self._check_sort(command)
        self._pages_scraped = 0
        self._rows_seen = 0

        log.info("Starting extraction", extractor=self.name, sort=command.value)

        page = await self.browser.new_page()
        try:
            await self.open(page)
            await self.apply_sort(page, command)
            items = await self.collect(page)
        finally:
            await page.close()

        result = ExtractionResult[T](
            items=items,
            sort=command,
            pages_scraped=self._pages_scraped,
            rows_seen=self._rows_seen,
            source_url=self.config.constituents_url,
        )

        log.info(
            "Extraction complete",
            extractor=self.name,
            total_items=len(result.items),
            pages_scraped=result.pages_scraped,
            rows_dropped=result.rows_dropped,
        )
        return result

    async def open(self, page: Page) -> None:
        """Navigate to the listing and dismiss the cookie overlay if shown."""
        await self.browser.navigate(page, self.config.constituents_url)
        await self.accept_overlay(page)

    async def accept_overlay(self, page: Page) -> bool:
        """Click the cookie consent button once it becomes visible.

        The consent banner renders after DOMContentLoaded, so the button is
        given up to `overlay_timeout_ms` to appear. A banner that never shows
        is not an error.

        Returns:
            True if the overlay was dismissed, False if there was none.
        """
        timeout = self.config.overlay_timeout_ms
        button = page.get_by_role("button", name=self.config.cookie_button_label).first
        try:
            await button.wait_for(state="visible", timeout=timeout)
        except PlaywrightTimeoutError:
            log.info(
                "Cookie overlay not shown",
                label=self.config.cookie_button_label,
                timeout_ms=timeout,
            )
            return False

        await button.click()
        log.debug("Cookie overlay dismissed")
        return True

    async def apply_sort(self, page: Page, command: SortCommand) -> None:
        """Sort the listing and wait until the sorted rows are rendered.

        Raises:
            ValueError: If this extractor does not support the command.
            SelectorNotFoundError: If a sort control never appears.
            ReadinessTimeoutError: If the ascending sort never shows a negative cell.
        """
        self._check_sort(command)

        if command is SortCommand.MARKET_CAP_DESC:
            header = page.get_by_text(self.config.market_cap_column_label)
            header_label = self.config.market_cap_column_label
        else:
            header = page.get_by_text(self.config.change_column_label, exact=True)
            header_label = self.config.change_column_label

        option_label = (
            self.config.sort_ascending_label
            if command is SortCommand.PERCENT_CHANGE_ASC
            else self.config.sort_descending_label
        )
        option = page.get_by_role("listitem").filter(has_text=option_label).locator("div")

        previous_first = await self.first_row_label(page)

        await self._click(page, header, header_label)
        await self._click(page, option, option_label)

        if command is SortCommand.PERCENT_CHANGE_ASC:
            await self._wait_for_negative_change(page)
        else:
            await self.wait_for_rerender(page, previous_first)

        log.info("Listing sorted", sort=command.value)

    async def read_all_text(self, page: Page, selector: str) -> list[str]:
        """Return the text of every element matching `selector`, in DOM order."""
        return await page.locator(selector).all_text_contents()

    async def first_row_label(self, page: Page) -> str | None:
        """Return the trimmed label of the first rendered row, if any."""
        names = await self.read_all_text(page, self.config.css_selector_instrument_name)
        return names[0].strip() if names else None

    async def wait_for_rerender(self, page: Page, previous_first: str | None) -> bool:
        """Wait until the first row label differs from `previous_first`.

        The wait is bounded by `rerender_timeout_ms`. When it elapses the
        current rows are read as they are: a sort can legitimately keep the
        same first row.

        Returns:
            True if a change was observed, False if the bound elapsed.
        """
        try:
            await page.wait_for_function(
                FIRST_ROW_CHANGED_JS,
                arg={
                    "selector": self.config.css_selector_instrument_name,
                    "previous": previous_first or "",
                },
                timeout=self.config.rerender_timeout_ms,
                polling=self.config.rerender_poll_ms,
            )
            return True
        except PlaywrightTimeoutError:
            log.warning(
                "Listing first row unchanged after interaction",
                previous_first=previous_first,
                timeout_ms=self.config.rerender_timeout_ms,
            )
            return False

    def record_page(self, rows_seen: int) -> None:
        """Record one listing page read for the extraction statistics."""
        self._pages_scraped += 1
        self._rows_seen += rows_seen

    def _check_sort(self, command: SortCommand) -> None:
        if command not in self.supported_sorts:
            raise ValueError(f"{self.name} does not support sort '{command.value}'")

    async def _wait_for_negative_change(self, page: Page) -> None:
        timeout = self.config.readiness_timeout_ms
        cell = page.locator(self.config.css_selector_negative_change).first
        try:
            await cell.wait_for(state="visible", timeout=timeout)
        except PlaywrightTimeoutError as exc:
            raise ReadinessTimeoutError(
                condition="a negative percentage change cell",
                timeout_ms=timeout,
                url=page.url,
            ) from exc

    async def _click(self, page: Page, locator: Locator, description: str) -> None:
        try:
            await locator.click()
        except PlaywrightTimeoutError as exc:
            raise SelectorNotFoundError(selector=description, url=page.url) from exc
