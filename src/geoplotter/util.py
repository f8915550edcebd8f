"""Logging helpers shared by the CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure root logging to console and optionally a file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def log_lines(logger: logging.Logger, lines: Iterable[str]) -> None:
    """Emit report lines at the level their prefix names."""
    for line in lines:
        if line.startswith("[ERROR]"):
            logger.error(line)
        elif line.startswith("[WARN]"):
            logger.warning(line)
        else:
            logger.info(line)
