"""JSON result envelopes written per scenario.

Every scenario produces one envelope, `{title, timestamp, ...payload}`,
saved as `<name>-<ISO timestamp>.json` in the results directory. Colons in
the timestamp are replaced with dashes so the file name is valid on every
filesystem. The directory is cleared once per process before the first
scenario runs.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from config.settings import GlobalConfig, get_config
from src.exceptions import ResultWriteError
from src.logger import get_logger

log = get_logger(__name__)


def iso_timestamp(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_envelope(title: str, **payload: Any) -> dict[str, Any]:
    """Wrap a scenario payload with its title and generation timestamp."""
    return {"title": title, "timestamp": iso_timestamp(), **payload}


class ResultWriter:
    """Persists result envelopes under `config.results_dir`."""

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()

    @property
    def results_dir(self) -> Path:
        return self.config.results_dir

    def write(self, name: str, payload: dict[str, Any]) -> Path:
        """Serialize `payload` to `<name>-<timestamp>.json`.

        Returns:
            Path of the written file.

        Raises:
            ResultWriteError: If the directory or file cannot be written.
        """
        safe_timestamp = iso_timestamp().replace(":", "-")
        path = self.results_dir / f"{name}-{safe_timestamp}.json"

        try:
            self.results_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except OSError as exc:
            raise ResultWriteError(path=str(path), reason=str(exc)) from exc

        log.info("Results written", name=name, path=str(path))
        return path

    def clear(self) -> int:
        """Delete every file directly inside the results directory.

        Subdirectories are left in place. A missing directory is not an error.

        Returns:
            Number of files removed.
        """
        if not self.results_dir.exists():
            return 0

        removed = 0
        for entry in self.results_dir.iterdir():
            if entry.is_file():
                entry.unlink()
                removed += 1

        log.info("Cleared results folder", files_removed=removed, path=str(self.results_dir))
        return removed
