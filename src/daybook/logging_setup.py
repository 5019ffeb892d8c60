# src/daybook/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "daybook.log"

# Minimum console level per logger prefix; the first match wins.
_CONSOLE_FLOORS: tuple[tuple[str, int], ...] = (
    # The Matrix sync loop logs on every long-poll; only problems belong next to the prompt.
    ("daybook.connectors.matrix_", logging.WARNING),
    ("daybook.", logging.NOTSET),
)
_DEFAULT_FLOOR = logging.ERROR


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keeps the REPL readable while the dispatcher and Matrix run in background threads.

    Sweep and command logs from daybook pass; nio sync chatter, aiohttp connection
    notices and captured py.warnings only show up on the console at ERROR. The log
    file gets everything regardless.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, floor in _CONSOLE_FLOORS:
            if record.name.startswith(prefix):
                return record.levelno >= floor
        return record.levelno >= _DEFAULT_FLOOR


def setup_logging(
    *,
    log_dir: str | Path = ".local/daybook",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """Install the console and file handlers on the root logger; returns the log file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Each nio sync response is logged at DEBUG/INFO; at INFO the file stays readable.
    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return log_file
