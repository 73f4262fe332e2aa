"""Tests for the top movers and market cap extraction strategies.

Validates the concrete extractors including:
- Top-N selection in rendered order
- Page-ascending traversal with per-page threshold filtering
- Pagination bounds: last page label, pagination_limit, missing links

Testing Philosophy:
    Listing rows are supplied in the order the site would render them, so
    every assertion about order is an assertion that the extractor does not
    re-sort or drop rows it should keep.
"""

from typing import Callable

import pytest

from config.settings import GlobalConfig
from src.exceptions import SelectorNotFoundError
from src.extractor import SortCommand
from src.scraper import MarketCapExtractor, TopMoversExtractor
from tests.conftest import FakeListingPage, make_rows


class TestTopMoversExtractor:
    """Test suite for Top-N extraction."""

    @pytest.mark.asyncio
    async def test_returns_first_ten_trimmed_labels_in_order(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(20)])
        extractor = TopMoversExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.PERCENT_CHANGE_DESC)

        assert [item.name for item in result.items] == [f"Company {i}" for i in range(1, 11)]
        assert [item.rank for item in result.items] == list(range(1, 11))
        assert page.clicked[0] == "cookies"

    @pytest.mark.asyncio
    async def test_fewer_rows_than_requested_returns_all_rows(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(4)])
        extractor = TopMoversExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.PERCENT_CHANGE_DESC)

        assert len(result.items) == 4

    @pytest.mark.asyncio
    async def test_custom_limit_overrides_config(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(20)])
        extractor = TopMoversExtractor(browser_factory(page), mock_config, limit=3)

        result = await extractor.extract(SortCommand.PERCENT_CHANGE_ASC)

        assert [item.name for item in result.items] == ["Company 1", "Company 2", "Company 3"]

    @pytest.mark.asyncio
    async def test_repeated_extraction_on_unchanged_listing_is_identical(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(12)])
        extractor = TopMoversExtractor(browser_factory(page), mock_config)

        first = await extractor.extract(SortCommand.PERCENT_CHANGE_DESC)
        second = await extractor.extract(SortCommand.PERCENT_CHANGE_DESC)

        assert first.items == second.items
        assert second.pages_scraped == 1

    @pytest.mark.asyncio
    async def test_top_n_reads_only_the_current_page(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(5), make_rows(20, prefix="Other")])
        extractor = TopMoversExtractor(browser_factory(page), mock_config)

        names = await extractor.top_n(page, 10)

        assert names == [f"Company {i}" for i in range(1, 6)]
        assert "2" not in page.clicked


class TestMarketCapExtractor:
    """Test suite for multi-page threshold extraction."""

    @pytest.mark.asyncio
    async def test_pages_are_concatenated_in_ascending_order(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        pages = [
            [("A1", "900"), ("A2", "800")],
            [("B1", "700"), ("B2", "600")],
            [("C1", "50"), ("C2", "7")],
        ]
        page = listing_page_factory(pages)
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.MARKET_CAP_DESC)

        assert [item.name for item in result.items] == ["A1", "A2", "B1", "B2", "C1"]
        assert result.pages_scraped == 3
        assert result.rows_seen == 6
        assert page.clicked[-2:] == ["2", "3"]

    @pytest.mark.asyncio
    async def test_threshold_is_strict_and_unparsable_rows_are_skipped(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory(
            [[("A", "1,234.5"), ("B", "7.0"), ("C", "abc"), ("D", "8.0"), ("E", "7.01")]]
        )
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.MARKET_CAP_DESC)

        assert [(item.name, item.market_cap) for item in result.items] == [
            ("A", 1234.5),
            ("D", 8.0),
            ("E", 7.01),
        ]
        assert result.rows_dropped == 2

    @pytest.mark.asyncio
    async def test_no_row_above_threshold_returns_empty_list(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([[("A", "5"), ("B", "-")]])
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.MARKET_CAP_DESC)

        assert result.items == []

    @pytest.mark.asyncio
    async def test_pagination_limit_bounds_pages_read(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        config = mock_config.model_copy(update={"pagination_limit": 2})
        page = listing_page_factory([make_rows(3, prefix=p) for p in ("A", "B", "C", "D")])
        extractor = MarketCapExtractor(browser_factory(page), config)

        result = await extractor.extract(SortCommand.MARKET_CAP_DESC)

        assert result.pages_scraped == 2
        assert {item.name[0] for item in result.items} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_missing_pagination_link_stops_traversal(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory(
            [make_rows(2, prefix=p) for p in ("A", "B", "C")], missing_links={3}
        )
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.MARKET_CAP_DESC)

        assert result.pages_scraped == 2
        assert "3" not in page.clicked

    @pytest.mark.asyncio
    async def test_last_page_number_ignores_non_numeric_links(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory(
            [make_rows(1)], pagination_labels=["Home", " 1 ", "2", "5", "Next", "10 results"]
        )
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        assert await extractor.last_page_number(page) == 5

    @pytest.mark.asyncio
    async def test_single_page_listing_without_links(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(3)], pagination_labels=[])
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        result = await extractor.extract(SortCommand.MARKET_CAP_DESC)

        assert await extractor.last_page_number(page) == 1
        assert result.pages_scraped == 1
        assert len(result.items) == 3

    @pytest.mark.asyncio
    async def test_navigate_to_page_waits_for_new_first_row(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([[("A1", "10")], [("B1", "9")]])
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        await extractor.navigate_to_page(page, 2)

        assert page.current_page == 2
        assert page.wait_for_function.call_args.kwargs["arg"]["previous"] == "A1"

    @pytest.mark.asyncio
    async def test_unclickable_pagination_link_raises_selector_not_found(
        self,
        mock_config: GlobalConfig,
        listing_page_factory: Callable[..., FakeListingPage],
        browser_factory: Callable,
    ) -> None:
        page = listing_page_factory([make_rows(1), make_rows(1)], failing_clicks={"2"})
        extractor = MarketCapExtractor(browser_factory(page), mock_config)

        with pytest.raises(SelectorNotFoundError):
            await extractor.extract(SortCommand.MARKET_CAP_DESC)

        page.close.assert_awaited_once()

    def test_threshold_defaults_to_config(self, mock_config: GlobalConfig) -> None:
        extractor = MarketCapExtractor(browser=None, config=mock_config)  # type: ignore[arg-type]
        assert extractor.threshold == mock_config.market_cap_threshold

        extractor = MarketCapExtractor(browser=None, config=mock_config, threshold=0.0)  # type: ignore[arg-type]
        assert extractor.threshold == 0.0
