"""Loguru setup: a console sink for people and a JSON-lines file for machines.

The file sink rotates and compresses old files; each line is one JSON object
holding the key/value context passed to the logging call.

The log directory is write-tested before any sink is added so a broken
deployment fails at startup rather than silently dropping diagnostics.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from src.exceptions import LoggingInitializationError

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{function}</cyan> | "
    "<level>{message}</level>"
)


def _json_serializer(record: dict[str, Any]) -> str:
    """Render a loguru record as a single JSON line."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["extra"].get("module", record["name"]),
        "function": record["function"],
        "line": record["line"],
    }

    exception = record["exception"]
    if exception is not None:
        payload["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    context = {
        key: value
        for key, value in record["extra"].items()
        if key not in ("serialized", "module")
    }
    if context:
        payload["context"] = context

    return json.dumps(payload, default=str) + "\n"


def _json_format(record: dict[str, Any]) -> str:
    # Callable formats skip loguru's appended traceback: one JSON object per line.
    record["extra"]["serialized"] = _json_serializer(record)
    return "{extra[serialized]}"


def _validate_log_directory(log_dir: Path) -> None:
    """Create the log directory and prove it is writable.

    Raises:
        LoggingInitializationError: If directory creation or write test fails.
    """
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        probe = log_dir / ".write_test"
        probe.write_text("write_test")
        probe.unlink()
    except PermissionError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"Permission denied: {exc}",
        ) from exc
    except OSError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"OS error during directory validation: {exc}",
        ) from exc


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Replace loguru's default handler with the console and JSON file sinks.

    Should be called once during bootstrap, before any scenario logs.

    Args:
        config: Optional GlobalConfig instance. If None, uses singleton.

    Raises:
        LoggingInitializationError: If log directory validation fails.
    """
    if config is None:
        config = get_config()

    logger.remove()
    logger.configure(extra={"module": "indexlens"})

    _validate_log_directory(config.log_dir)

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )

    logger.add(
        str(config.log_dir / "indexlens_{time:YYYY-MM-DD}.json"),
        format=_json_format,
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
    )

    logger.info(
        "Logging infrastructure initialized",
        app_name=config.app_name,
        environment=config.environment,
        log_level=config.log_level,
        log_dir=str(config.log_dir),
    )


def get_logger(name: str) -> "logger":
    """Get a logger bound with the calling module's name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Page read", page_number=2, rows=20)
    """
    return logger.bind(module=name)
