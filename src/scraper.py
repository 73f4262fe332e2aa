"""Concrete extractors for the FTSE 100 constituents listing.

Two strategies share the ConstituentsPage plumbing:

- TopMoversExtractor: sorts by percentage change and returns the first N
  row labels of the first page.
- MarketCapExtractor: sorts by market cap, walks every listing page and
  keeps rows whose market cap is strictly above the configured threshold.

Design Rationale:
    Both are coupled to the London Stock Exchange DOM through the selectors
    in GlobalConfig only, so a markup change is a configuration change.
"""

import re

from playwright.async_api import Page

from config.settings import GlobalConfig
from src.browser import BrowserManager
from src.extractor import ConstituentsPage, SortCommand
from src.logger import get_logger
from src.validator import Instrument, RankedName, select_above_threshold

log = get_logger(__name__)

_PAGE_NUMBER = re.compile(r"^\d+$")


class TopMoversExtractor(ConstituentsPage[RankedName]):
    """Return the first N constituents of a percentage-change sort.

    Example:
        async with BrowserManager.create() as browser:
            result = await TopMoversExtractor(browser).extract(SortCommand.PERCENT_CHANGE_DESC)
            print([item.name for item in result.items])
    """

    supported_sorts = frozenset(
        {SortCommand.PERCENT_CHANGE_DESC, SortCommand.PERCENT_CHANGE_ASC}
    )

    def __init__(
        self,
        browser: BrowserManager,
        config: GlobalConfig | None = None,
        limit: int | None = None,
    ) -> None:
        super().__init__(browser, config)
        self.limit = limit if limit is not None else self.config.top_n

    @property
    def name(self) -> str:
        return "TopMoversExtractor"

    async def collect(self, page: Page) -> list[RankedName]:
        names = await self.top_n(page, self.limit)
        return [RankedName(rank=rank, name=name) for rank, name in enumerate(names, start=1)]

    async def top_n(self, page: Page, n: int) -> list[str]:
        """Return the first `n` row labels of the current page in rendered order.

        Fewer than `n` labels are returned when the page has fewer rows.
        """
        labels = await self.read_all_text(page, self.config.css_selector_instrument_name)
        self.record_page(len(labels))
        return [label.strip() for label in labels[:n]]


class MarketCapExtractor(ConstituentsPage[Instrument]):
    """Collect every constituent whose market cap exceeds the threshold.

    Pages are read in ascending order and their rows concatenated as
    rendered; nothing is re-sorted after extraction.

    Attributes:
        threshold: Exclusive market cap bound, in millions.
    """

    supported_sorts = frozenset({SortCommand.MARKET_CAP_DESC})

    def __init__(
        self,
        browser: BrowserManager,
        config: GlobalConfig | None = None,
        threshold: float | None = None,
    ) -> None:
        super().__init__(browser, config)
        self.threshold = threshold if threshold is not None else self.config.market_cap_threshold

    @property
    def name(self) -> str:
        return "MarketCapExtractor"

    async def collect(self, page: Page) -> list[Instrument]:
        return await self.extract_all_pages_above_threshold(page)

    async def extract_current_page(self, page: Page) -> list[Instrument]:
        """Read the rendered page and keep rows above the threshold.

        A mismatch between the number of name and market cap cells is
        tolerated: rows are paired up to the shorter list.
        """
        names = await self.read_all_text(page, self.config.css_selector_instrument_name)
        market_caps = await self.read_all_text(page, self.config.css_selector_market_cap)

        if len(names) != len(market_caps):
            log.warning(
                "Row cell counts differ, pairing up to the shorter list",
                names=len(names),
                market_caps=len(market_caps),
            )

        self.record_page(min(len(names), len(market_caps)))
        return select_above_threshold(names, market_caps, self.threshold)

    async def navigate_to_page(self, page: Page, page_number: int) -> None:
        """Click the exact-match pagination link and wait for its rows.

        Raises:
            SelectorNotFoundError: If the link cannot be clicked.
        """
        previous_first = await self.first_row_label(page)
        link = page.get_by_role("link", name=str(page_number), exact=True)
        await self._click(page, link, f"pagination link {page_number}")
        await self.wait_for_rerender(page, previous_first)

    async def has_page(self, page: Page, page_number: int) -> bool:
        """Check whether a pagination link for `page_number` is rendered."""
        link = page.get_by_role("link", name=str(page_number), exact=True)
        return await link.count() > 0

    async def last_page_number(self, page: Page) -> int:
        """Read the highest page number offered by the pagination links.

        Returns 1 when the listing shows no numeric pagination link.
        """
        labels = await page.get_by_role("link").all_text_contents()
        numbers = [int(label.strip()) for label in labels if _PAGE_NUMBER.match(label.strip())]
        return max(numbers, default=1)

    async def extract_all_pages_above_threshold(self, page: Page) -> list[Instrument]:
        """Walk the listing from page 1 to its last page, filtering each page.

        Stops early when `pagination_limit` pages have been read or the next
        pagination link is missing.

        Returns:
            Retained rows in page-ascending, row-ascending order; possibly empty.
        """
        instruments = await self.extract_current_page(page)
        log.info("Page read", page_number=1, retained=len(instruments))

        last_page = await self.last_page_number(page)
        limit = self.config.pagination_limit
        if limit > 0:
            last_page = min(last_page, limit)

        for page_number in range(2, last_page + 1):
            if not await self.has_page(page, page_number):
                log.info("Pagination link missing, stopping", page_number=page_number)
                break

            await self.navigate_to_page(page, page_number)
            page_items = await self.extract_current_page(page)
            instruments.extend(page_items)

            log.info(
                "Page read",
                page_number=page_number,
                retained=len(page_items),
                total_retained=len(instruments),
            )

        return instruments
