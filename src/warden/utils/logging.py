"""Logging setup shared by every warden entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_file_logging(
    log_file: Path | None = None,
    level: str = "info",
    verbose: bool = False,
    mirror_stdout: bool = True,
) -> None:
    """
    Configure the root logger once per process.

    Every line is appended to log_file (when given) and mirrored to stdout.
    Module loggers (logging.getLogger(__name__)) propagate here.

    Args:
        log_file: File to append log lines to
        level: Configured level name (debug, info, warning, error)
        verbose: Force DEBUG regardless of level
        mirror_stdout: Also write to stdout (off when stdout already is log_file)
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if mirror_stdout or log_file is None:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            # Log to stdout only; a broken log file must not stop the watchdog
            print(f"Cannot open log file {log_file}: {e}", file=sys.stderr)
            if not handlers:
                handlers.append(logging.StreamHandler(sys.stdout))

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
