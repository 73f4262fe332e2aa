"""IndexLens Entry Point.

This module is the bootstrap and orchestration layer. It contains no
extraction logic; all functional code resides in /src.

Responsibilities:
    1. Load and validate configuration
    2. Initialize logging infrastructure (fail-fast on error)
    3. Clear the results folder once, then run every configured scenario
    4. Generate reports and map the run to an exit code

Exit codes:
    0: every scenario passed
    1: a scenario failed, or a fatal error occurred
    130: interrupted by the user

Usage:
    python main.py
    # or, once installed
    indexlens
"""

import asyncio
import sys
from typing import NoReturn

from loguru import logger

from config.settings import GlobalConfig, get_config
from src.exceptions import (
    ConfigValidationError,
    IndexLensError,
    LoggingInitializationError,
)
from src.logger import configure_logging


def _validate_startup_requirements(config: GlobalConfig) -> None:
    """Pre-flight checks before any browser or network work.

    Raises:
        ConfigValidationError: If no scenario is configured.
        SystemExit: If an output directory cannot be created.
    """
    if not config.scenarios:
        raise ConfigValidationError(
            field="scenarios", value=config.scenarios, reason="at least one scenario is required"
        )

    for directory in (config.results_dir, config.output_dir):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.critical(
                "Failed to create output directory",
                directory=str(directory),
                error=str(exc),
            )
            sys.exit(1)

    logger.debug(
        "Startup validation complete",
        results_dir=str(config.results_dir),
        output_dir=str(config.output_dir),
        scenarios=config.scenarios,
    )


async def _run_pipeline(config: GlobalConfig) -> int:
    """Run the configured scenarios and generate reports.

    Returns:
        0 if every scenario passed, 1 otherwise.
    """
    from src.browser import BrowserManager
    from src.finance import FinanceService
    from src.reporter import ReportGenerator
    from src.results import ResultWriter
    from src.scenarios import ScenarioRunner

    logger.info(
        "Pipeline execution started",
        app_name=config.app_name,
        environment=config.environment,
        constituents_url=config.constituents_url,
        scenarios=config.scenarios,
    )

    writer = ResultWriter(config)
    writer.clear()

    async with (
        BrowserManager.create(config) as browser,
        FinanceService.create(config) as finance,
    ):
        logger.info("Browser and finance client initialized")
        run = await ScenarioRunner(browser, finance, writer, config).run()

    if config.generate_reports and run.has_data:
        reports = ReportGenerator(config).generate_all(run)
        logger.info(
            "Reports generated successfully",
            **{f"{kind}_path": str(path) for kind, path in reports.items()},
        )
    elif config.generate_reports:
        logger.warning("No scenario produced data - skipping report generation")

    for outcome in run.outcomes:
        if not outcome.passed:
            logger.error("Scenario did not pass", scenario=outcome.name, error=outcome.error)

    if not run.passed:
        logger.error("Pipeline completed with failures")
        return 1

    logger.info("Pipeline execution completed successfully")
    return 0


def _handle_fatal_error(exc: Exception) -> NoReturn:
    """Log a fatal error and exit with status 1."""
    if isinstance(exc, IndexLensError):
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        sys.exit(1)

    logger.exception("Unexpected fatal error", error=str(exc))
    sys.exit(1)


def main() -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = get_config()
    except Exception as exc:
        # Cannot log yet - print to stderr
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    try:
        _validate_startup_requirements(config)
    except SystemExit:
        raise
    except Exception as exc:
        logger.exception("Startup validation failed", error=str(exc))
        return 1

    try:
        return asyncio.run(_run_pipeline(config))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return 130
    except Exception as exc:
        _handle_fatal_error(exc)


if __name__ == "__main__":
    sys.exit(main())
