"""Scenario driver for the FTSE 100 extraction runs.

Each scenario wires one extractor to the result writer, checks the
extracted data meets its expectation and logs the results line by line:

- top-risers: ten constituents with the highest percentage change
- top-fallers: ten constituents with the lowest percentage change
- market-cap: every constituent above the market cap threshold
- index-low: lowest monthly close of the index over the lookback window

A failing scenario is logged with its cause and recorded; the remaining
scenarios still run.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from config.settings import GlobalConfig, ScenarioName, get_config
from src.browser import BrowserManager
from src.exceptions import ScenarioAssertionError
from src.extractor import SortCommand
from src.finance import FinanceService
from src.logger import get_logger
from src.results import ResultWriter, build_envelope
from src.scraper import MarketCapExtractor, TopMoversExtractor
from src.validator import ExtremumResult, Instrument, RankedName

log = get_logger(__name__)


@dataclass
class ScenarioOutcome:
    """Result of one scenario: where it was written, or why it failed."""

    name: ScenarioName
    passed: bool
    result_path: Path | None = None
    error: str | None = None


@dataclass
class ScenarioRun:
    """Everything a run produced, consumed by the report generator."""

    outcomes: list[ScenarioOutcome] = field(default_factory=list)
    top_risers: list[RankedName] | None = None
    top_fallers: list[RankedName] | None = None
    market_caps: list[Instrument] | None = None
    index_history: ExtremumResult | None = None

    @property
    def passed(self) -> bool:
        return all(outcome.passed for outcome in self.outcomes)

    @property
    def has_data(self) -> bool:
        return any(
            value is not None
            for value in (self.top_risers, self.top_fallers, self.market_caps, self.index_history)
        )


def ranked_payload(items: Sequence[RankedName]) -> list[dict]:
    return [{"rank": item.rank, "name": item.name} for item in items]


def market_cap_payload(items: Sequence[Instrument]) -> list[dict]:
    return [
        {"rank": rank, "name": item.name, "marketCap": item.market_cap}
        for rank, item in enumerate(items, start=1)
    ]


def index_history_payload(result: ExtremumResult) -> dict:
    lowest = result.lowest_point
    return {
        "lowestPoint": {
            "date": lowest.date.isoformat(),
            "formattedDate": lowest.month_label,
            "value": lowest.value,
        },
        "allDataPoints": [
            {
                "rank": rank,
                "date": point.date.isoformat(),
                "formattedDate": point.month_label,
                "value": point.value,
            }
            for rank, point in enumerate(result.data_points, start=1)
        ],
    }


class ScenarioRunner:
    """Runs scenarios sequentially against shared collaborators.

    Attributes:
        config: GlobalConfig with scenario parameters.
        browser: BrowserManager for listing scenarios.
        finance: FinanceService for the index scenario.
        writer: ResultWriter receiving one envelope per scenario.
    """

    def __init__(
        self,
        browser: BrowserManager,
        finance: FinanceService,
        writer: ResultWriter,
        config: GlobalConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.browser = browser
        self.finance = finance
        self.writer = writer

    async def run(self, names: Sequence[ScenarioName] | None = None) -> ScenarioRun:
        """Execute the named scenarios (default: `config.scenarios`) in order."""
        run = ScenarioRun()
        handlers: dict[ScenarioName, Callable[[ScenarioRun], Awaitable[Path]]] = {
            "top-risers": self.top_risers,
            "top-fallers": self.top_fallers,
            "market-cap": self.market_cap_above_threshold,
            "index-low": self.lowest_index_month,
        }

        for name in names or self.config.scenarios:
            log.info("Scenario started", scenario=name)
            try:
                path = await handlers[name](run)
            except Exception as exc:
                log.opt(exception=exc).error(
                    "Scenario failed",
                    scenario=name,
                    error_type=type(exc).__name__,
                )
                run.outcomes.append(ScenarioOutcome(name=name, passed=False, error=str(exc)))
                continue

            run.outcomes.append(ScenarioOutcome(name=name, passed=True, result_path=path))
            log.info("Scenario passed", scenario=name, result_path=str(path))

        log.info(
            "Scenarios finished",
            passed=sum(outcome.passed for outcome in run.outcomes),
            failed=sum(not outcome.passed for outcome in run.outcomes),
        )
        return run

    async def top_risers(self, run: ScenarioRun) -> Path:
        run.top_risers, path = await self._top_movers(
            scenario="top-risers",
            command=SortCommand.PERCENT_CHANGE_DESC,
            title=f"Top {self.config.top_n} instruments with highest percentage change",
            result_name="highest-percentage",
        )
        return path

    async def top_fallers(self, run: ScenarioRun) -> Path:
        run.top_fallers, path = await self._top_movers(
            scenario="top-fallers",
            command=SortCommand.PERCENT_CHANGE_ASC,
            title=f"Top {self.config.top_n} instruments with lowest percentage change",
            result_name="lowest-percentage",
        )
        return path

    async def _top_movers(
        self,
        scenario: ScenarioName,
        command: SortCommand,
        title: str,
        result_name: str,
    ) -> tuple[list[RankedName], Path]:
        result = await TopMoversExtractor(self.browser, self.config).extract(command)
        items = result.items

        if len(items) != self.config.top_n:
            raise ScenarioAssertionError(
                scenario=scenario,
                expectation=f"exactly {self.config.top_n} instruments",
                actual=len(items),
            )

        path = self.writer.write(
            result_name, build_envelope(title, instruments=ranked_payload(items))
        )

        log.info(title, found=len(items))
        for item in items:
            log.info("Ranked instrument", rank=item.rank, name=item.name)
        return items, path

    async def market_cap_above_threshold(self, run: ScenarioRun) -> Path:
        threshold = self.config.market_cap_threshold
        result = await MarketCapExtractor(self.browser, self.config).extract(
            SortCommand.MARKET_CAP_DESC
        )
        items = result.items

        title = f"Instruments with market cap > {threshold:g} million"
        path = self.writer.write(
            f"market-cap-above-{threshold:g}m",
            build_envelope(title, count=len(items), instruments=market_cap_payload(items)),
        )
        run.market_caps = items

        log.info(title, found=len(items), pages_scraped=result.pages_scraped)
        for rank, item in enumerate(items, start=1):
            log.info(
                "Instrument above threshold",
                rank=rank,
                name=item.name,
                market_cap=f"{item.market_cap:,.2f}",
            )

        if not items:
            raise ScenarioAssertionError(
                scenario="market-cap",
                expectation="at least one instrument above the threshold",
                actual=0,
            )
        return path

    async def lowest_index_month(self, run: ScenarioRun) -> Path:
        years = self.config.lookback_years
        result = await self.finance.fetch_lowest_over_window(years)
        lowest = result.lowest_point

        title = f"Lowest {self.config.index_symbol} value over past {years} years"
        path = self.writer.write(
            f"lowest-month-past-{years}-years",
            build_envelope(title, **index_history_payload(result)),
        )
        run.index_history = result

        log.info(title, date=lowest.month_label, value=f"{lowest.value:,.2f}")
        for rank, point in enumerate(result.data_points, start=1):
            log.debug("Index sample", rank=rank, month=point.month_label, value=point.value)

        minimum = self.config.min_index_samples
        if len(result.data_points) <= minimum:
            raise ScenarioAssertionError(
                scenario="index-low",
                expectation=f"more than {minimum} samples",
                actual=len(result.data_points),
            )
        if lowest.value <= 0:
            raise ScenarioAssertionError(
                scenario="index-low",
                expectation="a positive lowest value",
                actual=lowest.value,
            )
        return path
