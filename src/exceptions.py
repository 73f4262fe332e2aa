"""Custom exception hierarchy for IndexLens.

Every failure a scenario can hit is a subclass of IndexLensError so the
scenario driver can report it uniformly. Each exception carries a context
dictionary (selector, URL, timeout, payload path) for the structured logs.
"""

from datetime import UTC, datetime
from typing import Any


class IndexLensError(Exception):
    """Base exception for all IndexLens errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class ConfigValidationError(IndexLensError):
    """Raised when a configuration value is unusable at startup."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(
            message=f"Configuration validation failed for '{field}': {reason}",
            context={"field": field, "value": value, "reason": reason},
        )


class BrowserInitializationError(IndexLensError):
    """Raised when the browser instance fails to initialize."""

    def __init__(self, reason: str, browser_type: str = "chromium") -> None:
        super().__init__(
            message=f"Failed to initialize {browser_type} browser: {reason}",
            context={"browser_type": browser_type, "reason": reason},
        )


class NavigationError(IndexLensError):
    """Raised when page navigation fails or returns an HTTP error."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Navigation to '{url}' failed: {reason}",
            context={"url": url, "reason": reason, "status_code": status_code},
        )


class ExtractionError(IndexLensError):
    """Raised when reading or interacting with a listing element fails."""

    def __init__(self, selector: str, url: str, reason: str) -> None:
        super().__init__(
            message=f"Extraction failed for selector '{selector}': {reason}",
            context={"selector": selector, "url": url, "reason": reason},
        )


class SelectorNotFoundError(ExtractionError):
    """Raised when an expected control or element never appears.

    Indicates the listing layout changed; never recovered inside an extractor.
    """

    def __init__(self, selector: str, url: str) -> None:
        super().__init__(
            selector=selector,
            url=url,
            reason="Element did not appear - possible layout change",
        )


class ReadinessTimeoutError(IndexLensError):
    """Raised when a bounded readiness wait elapses without its signal."""

    def __init__(self, condition: str, timeout_ms: int, url: str) -> None:
        super().__init__(
            message=f"Timed out after {timeout_ms}ms waiting for {condition}",
            context={"condition": condition, "timeout_ms": timeout_ms, "url": url},
        )
        self.timeout_ms = timeout_ms


class FinanceApiError(IndexLensError):
    """Raised when the chart API answers with an HTTP error status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(
            message=f"Chart API request failed with HTTP {status_code}",
            context={"url": url, "status_code": status_code},
        )
        self.status_code = status_code


class DecodeError(IndexLensError):
    """Raised when the chart API body is not the expected shape."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(
            message=f"Unexpected chart API payload: {reason}",
            context={"url": url, "reason": reason},
        )


class EmptySeriesError(IndexLensError):
    """Raised when a minimum is requested over zero data points."""

    def __init__(self, source: str = "time series") -> None:
        super().__init__(
            message=f"Cannot reduce an empty {source}",
            context={"source": source},
        )


class ScenarioAssertionError(IndexLensError):
    """Raised by the scenario driver when extracted data misses an expectation."""

    def __init__(self, scenario: str, expectation: str, actual: Any) -> None:
        super().__init__(
            message=f"Scenario '{scenario}' expected {expectation}, got {actual}",
            context={"scenario": scenario, "expectation": expectation, "actual": actual},
        )


class ResultWriteError(IndexLensError):
    """Raised when a result envelope cannot be written to disk."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to write results to '{path}': {reason}",
            context={"path": path, "reason": reason},
        )


class ReportGenerationError(IndexLensError):
    """Raised when Excel or dashboard generation fails."""

    def __init__(self, report_type: str, reason: str, output_path: str | None = None) -> None:
        super().__init__(
            message=f"Failed to generate {report_type} report: {reason}",
            context={"report_type": report_type, "reason": reason, "output_path": output_path},
        )


class LoggingInitializationError(IndexLensError):
    """Raised when the logging system fails to initialize.

    This is a startup-blocking error - the application cannot proceed
    without a functioning logging infrastructure.
    """

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )
