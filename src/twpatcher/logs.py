"""
Logging setup for twpatcher.

Console output goes to stderr. When a log path is configured, every record is
also appended as one JSON object per line:

    {"ts": "2026-01-01T12:00:00.000Z", "level": "INFO", "logger": "...", "msg": "..."}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


def _format_timestamp(created: float) -> str:
    """Format a record time as ISO 8601 UTC with milliseconds."""
    now = datetime.fromtimestamp(created, tz=timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class JsonlFormatter(logging.Formatter):
    """Render records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": _format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(verbose: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Configure the ``twpatcher`` logger hierarchy.

    Args:
        verbose: Emit DEBUG records on the console
        log_path: Optional JSONL file to append records to

    Returns:
        The package root logger
    """
    root = logging.getLogger("twpatcher")
    root.setLevel(logging.DEBUG)

    # Re-running setup (tests, repeated CLI calls) must not stack handlers
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(console)

    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            root.warning(f"Cannot open log file {log_path}: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(JsonlFormatter())
            root.addHandler(file_handler)

    root.propagate = False
    return root
