"""Run configuration for IndexLens, read from the environment with pydantic-settings.

Every listing label, CSS selector, timing bound and chart API parameter is a
field here, so a site or API change is an environment change. Values come
from environment variables or a .env file and are validated on load.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ScenarioName = Literal["top-risers", "top-fallers", "market-cap", "index-low"]


class GlobalConfig(BaseSettings):
    """Validated settings for one run.

    Defaults reproduce the standard run: the FTSE 100 table on the London
    Stock Exchange site, a 7m market cap threshold and three years of
    monthly ^FTSE closes. Environment variable names are the upper-cased
    field names.

    Attributes:
        app_name: Application identifier for logging.
        environment: Deployment environment.
        debug: Enable verbose debugging output.
        headless: Run Chromium without a visible window.
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        constituents_url: FTSE 100 constituents listing page.
        market_cap_threshold: Exclusive lower bound (millions) for market cap rows.
        top_n: Number of labels returned by the top movers scenarios.
        pagination_limit: Maximum listing pages to read (0 = every page).
        readiness_timeout_ms: Bound for the negative-cell readiness wait.
        overlay_timeout_ms: How long the cookie consent button may take to appear.
        rerender_timeout_ms: Bound for the first-row-changed wait.
        rerender_poll_ms: Polling interval for the first-row-changed wait.
        request_timeout_ms: Default Playwright and HTTP timeout.
        finance_api_url: Chart API base URL (symbol is appended).
        index_symbol: Index ticker queried on the chart API.
        lookback_years: Size of the historical window in 365-day years.
        min_index_samples: The index-low scenario fails unless the window holds more samples.
        series_interval: Sample granularity passed to the chart API.
        results_dir: Directory for per-scenario JSON result envelopes.
        output_dir: Directory for Excel and HTML reports.
        scenarios: Scenarios executed by main.py, in order.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="IndexLens", description="Application identifier")
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Browser Configuration
    headless: bool = Field(default=True, description="Run browser in headless mode")
    locale: str = Field(default="en-GB", description="Browser context locale")
    timezone_id: str = Field(default="Europe/London", description="Browser context timezone")
    user_agents: list[str] = Field(
        default=[
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        ],
        min_length=1,
        description="User-agent pool shared by the browser and the HTTP client",
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 week", description="Log rotation interval")
    log_retention: str = Field(default="1 month", description="Log retention period")

    # Listing Target
    constituents_url: str = Field(
        default="https://www.londonstockexchange.com/indices/ftse-100/constituents/table",
        description="Constituents listing URL",
    )
    cookie_button_label: str = Field(
        default="Accept all cookies", description="Accessible name of the cookie overlay button"
    )
    change_column_label: str = Field(default="Change %", description="Percentage change header")
    market_cap_column_label: str = Field(
        default="Market cap (m)", description="Market cap header"
    )
    sort_descending_label: str = Field(default="Highest – lowest", description="Descending option")
    sort_ascending_label: str = Field(default="Lowest – highest", description="Ascending option")

    # CSS Selectors (Target: londonstockexchange.com)
    css_selector_instrument_name: str = Field(
        default=".instrument-name", description="Row label selector"
    )
    css_selector_market_cap: str = Field(
        default="td.instrument-marketcapitalization", description="Row market cap selector"
    )
    css_selector_negative_change: str = Field(
        default='td:has-text("-") >> text=/%/',
        description="Negative percentage cell, rendered once an ascending sort lands",
    )

    # Extraction Parameters
    market_cap_threshold: float = Field(
        default=7.0, ge=0.0, description="Exclusive market cap threshold in millions"
    )
    top_n: int = Field(default=10, ge=1, le=100, description="Top movers count")
    pagination_limit: int = Field(
        default=0, ge=0, description="Max listing pages to read (0 = unlimited)"
    )

    # Timing
    request_timeout_ms: int = Field(
        default=30000, ge=1000, le=120000, description="Request timeout in milliseconds"
    )
    readiness_timeout_ms: int = Field(
        default=10000, ge=100, le=60000, description="Ascending sort readiness bound"
    )
    overlay_timeout_ms: int = Field(
        default=5000, ge=0, le=60000, description="Wait for the cookie consent button"
    )
    rerender_timeout_ms: int = Field(
        default=5000, ge=100, le=60000, description="Listing re-render bound"
    )
    rerender_poll_ms: int = Field(
        default=100, ge=10, le=5000, description="Listing re-render polling interval"
    )

    # Finance API
    finance_api_url: str = Field(
        default="https://query1.finance.yahoo.com/v8/finance/chart/",
        description="Chart API base URL",
    )
    index_symbol: str = Field(default="^FTSE", description="Index symbol")
    lookback_years: int = Field(default=3, ge=1, le=30, description="History window in years")
    min_index_samples: int = Field(
        default=36, ge=0, description="Samples the index history must exceed"
    )
    series_interval: Literal["1d", "1wk", "1mo", "3mo"] = Field(
        default="1mo", description="Sample granularity"
    )

    # Output Configuration
    results_dir: Path = Field(default=Path("results"), description="Result envelope directory")
    output_dir: Path = Field(default=Path("output"), description="Report output directory")
    generate_reports: bool = Field(default=True, description="Write Excel and HTML reports")

    scenarios: list[ScenarioName] = Field(
        default=["top-risers", "top-fallers", "market-cap", "index-low"],
        description="Scenarios to execute",
    )

    @field_validator("log_dir", "results_dir", "output_dir", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Accept plain strings from the environment for directory fields."""
        return Path(value) if isinstance(value, str) else value

    @field_validator("finance_api_url")
    @classmethod
    def validate_api_url(cls, value: str) -> str:
        """Ensure the chart API base ends with a slash so the symbol can be appended."""
        return value if value.endswith("/") else f"{value}/"


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Return the process-wide GlobalConfig, built on first call.

    Tests call `get_config.cache_clear()` to rebuild it from a patched environment.
    """
    return GlobalConfig()
