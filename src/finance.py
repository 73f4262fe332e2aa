"""Index time-series fetching and reduction.

FinanceService issues one request to the chart API for a fixed lookback
window, decodes the payload into FinancialDataPoints (dropping samples with
a null close) and hands them to `reduce_to_minimum`.

The window uses a fixed 365-day year: "3 years" ends now and starts
3 * 365 days earlier, leap days ignored.
"""

from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import AsyncGenerator, Self
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from config.settings import GlobalConfig, get_config
from src.exceptions import DecodeError, EmptySeriesError, FinanceApiError
from src.logger import get_logger
from src.validator import ChartResponse, ExtremumResult, FinancialDataPoint

log = get_logger(__name__)

DAYS_PER_YEAR = 365


def reduce_to_minimum(points: Iterable[FinancialDataPoint]) -> ExtremumResult:
    """Find the lowest-valued point with a single left-to-right scan.

    Ties keep the earliest point. The input order is preserved in the
    returned `data_points`.

    Raises:
        EmptySeriesError: If `points` is empty.
    """
    data_points = list(points)
    if not data_points:
        raise EmptySeriesError()

    lowest = data_points[0]
    for point in data_points[1:]:
        if point.value < lowest.value:
            lowest = point

    return ExtremumResult(lowest_point=lowest, data_points=data_points)


def lookback_window(years: int, now: datetime | None = None) -> tuple[int, int]:
    """Return (start, end) Unix seconds for a window of `years` 365-day years."""
    end = now or datetime.now(UTC)
    start = end - timedelta(days=DAYS_PER_YEAR * years)
    return int(start.timestamp()), int(end.timestamp())


class FinanceService:
    """Client for the index chart API.

    Attributes:
        config: GlobalConfig with API URL, symbol and window settings.
        client: httpx AsyncClient used for the request.

    Example:
        async with FinanceService.create() as finance:
            result = await finance.fetch_lowest_over_window()
            print(result.lowest_point.month_label)
    """

    def __init__(self, client: httpx.AsyncClient, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self.client = client

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Yield a service backed by a fresh AsyncClient, closed on exit."""
        if config is None:
            config = get_config()

        async with httpx.AsyncClient(
            timeout=config.request_timeout_ms / 1000,
            headers={"User-Agent": config.user_agents[0], "Accept": "application/json"},
        ) as client:
            yield cls(client, config)

    def chart_url(self, symbol: str | None = None) -> str:
        """Chart endpoint for `symbol`, URL-encoded into the path (^FTSE -> %5EFTSE)."""
        return f"{self.config.finance_api_url}{quote(symbol or self.config.index_symbol, safe='')}"

    async def fetch_data_points(
        self,
        years: int | None = None,
        interval: str | None = None,
    ) -> list[FinancialDataPoint]:
        """Fetch the window and return its non-null samples in source order.

        Raises:
            FinanceApiError: If the API answers with an HTTP error status.
            DecodeError: If the body is not JSON or lacks the expected fields.
            ValueError: If `years` is below 1.
        """
        if years is None:
            years = self.config.lookback_years
        if interval is None:
            interval = self.config.series_interval
        if years < 1:
            raise ValueError(f"Lookback window must be at least one year, got {years}")
        period1, period2 = lookback_window(years)
        url = self.chart_url()

        log.info(
            "Fetching index history",
            url=url,
            symbol=self.config.index_symbol,
            period1=period1,
            period2=period2,
            interval=interval,
        )

        response = await self.client.get(
            url,
            params={"period1": period1, "period2": period2, "interval": interval},
        )
        if response.status_code >= 400:
            raise FinanceApiError(url=url, status_code=response.status_code)

        try:
            payload = ChartResponse.model_validate(response.json())
        except ValueError as exc:
            # ValidationError and JSONDecodeError are both ValueErrors
            reason = (
                f"{exc.error_count()} validation error(s): {exc.errors()[0]['loc']}"
                if isinstance(exc, ValidationError)
                else f"body is not JSON: {exc}"
            )
            raise DecodeError(url=url, reason=reason) from exc

        raw_count = len(payload.chart.result[0].timestamp)
        data_points = payload.to_data_points()

        log.info(
            "Index history retrieved",
            samples=raw_count,
            data_points=len(data_points),
            dropped_null=raw_count - len(data_points),
        )
        return data_points

    async def fetch_lowest_over_window(
        self,
        years: int | None = None,
        interval: str | None = None,
    ) -> ExtremumResult:
        """Fetch the lookback window and return its lowest sample.

        Raises:
            FinanceApiError: If the API answers with an HTTP error status.
            DecodeError: If the body is not the expected shape.
            EmptySeriesError: If the window has no non-null samples.
        """
        data_points = await self.fetch_data_points(years, interval)
        return reduce_to_minimum(data_points)
