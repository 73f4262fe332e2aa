"""Data models and row validation.

This module implements:
- Pydantic schemas for listing rows, ranked labels and index samples
- Market-cap text parsing and threshold filtering for listing pages
- Pydantic decoding of the chart API payload

Design Rationale:
    Listing cells arrive as locale-formatted text. A row whose market cap
    cannot be read as a finite number is not an error: it is skipped, and
    the extractor logs how many rows were dropped per page. Chart payloads
    are the opposite case: a missing field means the contract with the API
    changed, so decoding fails loudly.
"""

import math
from collections.abc import Sequence
from datetime import UTC, datetime

from pydantic import BaseModel, Field, model_validator

from src.logger import get_logger

log = get_logger(__name__)


class Instrument(BaseModel):
    """One listing row retained by the market-cap filter.

    Attributes:
        name: Constituent display name, whitespace trimmed.
        market_cap: Market capitalization in millions.
    """

    name: str
    market_cap: float = Field(..., allow_inf_nan=False)


class RankedName(BaseModel):
    """A constituent label with its 1-based position in the rendered listing."""

    rank: int = Field(..., ge=1)
    name: str


class FinancialDataPoint(BaseModel):
    """A closing price sample of the index."""

    date: datetime
    value: float = Field(..., allow_inf_nan=False)

    @classmethod
    def from_unix(cls, timestamp: int, value: float) -> "FinancialDataPoint":
        """Build a point from a Unix-seconds timestamp (interpreted as UTC)."""
        return cls(date=datetime.fromtimestamp(timestamp, tz=UTC), value=value)

    @property
    def month_label(self) -> str:
        """Human-readable month, e.g. 'March 2023'."""
        return self.date.strftime("%B %Y")


class ExtremumResult(BaseModel):
    """Lowest sample of a window plus the cleaned samples it was chosen from."""

    lowest_point: FinancialDataPoint
    data_points: list[FinancialDataPoint]


def parse_market_cap(text: str) -> float | None:
    """Parse a locale-formatted market cap cell.

    Thousands separators are stripped before conversion:
    - "1,234.5" -> 1234.5
    - "8.0" -> 8.0
    - "abc", "", "-" -> None

    Returns:
        The parsed value, or None when the text is not a finite number.
    """
    cleaned = text.strip().replace(",", "")
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def select_above_threshold(
    names: Sequence[str],
    market_caps: Sequence[str],
    threshold: float,
) -> list[Instrument]:
    """Pair row names with market cap cells and keep rows above the threshold.

    Cells are paired positionally up to the shorter of the two sequences.
    The comparison is strict: a value equal to the threshold is dropped.

    Args:
        names: Row label texts, in rendered order.
        market_caps: Row market cap texts, in rendered order.
        threshold: Exclusive lower bound.

    Returns:
        Retained rows, in rendered order.
    """
    retained: list[Instrument] = []
    for name, cap_text in zip(names, market_caps):
        value = parse_market_cap(cap_text)
        if value is None:
            log.debug("Skipping row with unparsable market cap", name=name.strip(), text=cap_text)
            continue
        if value > threshold:
            retained.append(Instrument(name=name.strip(), market_cap=value))
    return retained


class ChartQuote(BaseModel):
    close: list[float | None]


class ChartIndicators(BaseModel):
    quote: list[ChartQuote] = Field(..., min_length=1)


class ChartSeries(BaseModel):
    """A single `chart.result[]` entry: parallel timestamp and close arrays."""

    timestamp: list[int]
    indicators: ChartIndicators

    @model_validator(mode="after")
    def validate_parallel_arrays(self) -> "ChartSeries":
        closes = self.indicators.quote[0].close
        if len(closes) != len(self.timestamp):
            raise ValueError(
                f"timestamp has {len(self.timestamp)} entries but close has {len(closes)}"
            )
        return self


class ChartBody(BaseModel):
    result: list[ChartSeries] = Field(..., min_length=1)


class ChartResponse(BaseModel):
    """Top-level chart API body."""

    chart: ChartBody

    def to_data_points(self) -> list[FinancialDataPoint]:
        """Map the first series to data points, dropping null closes.

        Order follows the payload (chronological for the chart API).
        """
        series = self.chart.result[0]
        closes = series.indicators.quote[0].close
        return [
            FinancialDataPoint.from_unix(timestamp, close)
            for timestamp, close in zip(series.timestamp, closes)
            if close is not None
        ]
