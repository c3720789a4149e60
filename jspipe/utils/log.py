"""Centralized logging configuration and build-step timing for jspipe."""

from __future__ import annotations

import logging
import logging.handlers
import os
import time
from pathlib import Path
from typing import Optional, TextIO

_DEFAULT_FMT = "%(asctime)s [%(levelname)s] %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"


def setup_logging(
    level: str = "INFO",
    fmt: Optional[str] = None,
    datefmt: Optional[str] = None,
    log_file: Optional[str | Path] = None,
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the ``jspipe`` logger.

    Parameters
    ----------
    level:
        Logging level name. Can also be set via ``JSPIPE_LOG_LEVEL``.
    fmt, datefmt:
        Formatter overrides.
    log_file:
        Path to a rotating log file. ``None`` disables file output.
        Can also be set via ``JSPIPE_LOG_FILE``.
    stream:
        Console stream; defaults to stderr.
    """
    level = os.environ.get("JSPIPE_LOG_LEVEL", level).upper()
    log_file = log_file or os.environ.get("JSPIPE_LOG_FILE")

    logger = logging.getLogger("jspipe")
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Clear existing handlers to allow re-configuration
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(fmt or _DEFAULT_FMT, datefmt=datefmt or _DEFAULT_DATEFMT)

    console = logging.StreamHandler(stream)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def format_duration(seconds: float) -> str:
    """``(250 ms)``, ``(3.042 s)`` or ``(1 m 3.042 s)``."""
    total_ms = max(0, int(round(seconds * 1000)))
    mins, rem = divmod(total_ms, 60_000)
    secs, ms = divmod(rem, 1000)
    if mins > 0:
        return f"({mins} m {secs}.{ms:03d} s)"
    if secs == 0:
        return f"({ms:03d} ms)"
    return f"({secs}.{ms:03d} s)"


def end_build_step(step_name: str, target_name: str, start_time: float) -> None:
    """Log a finished build step with the time elapsed since *start_time* (monotonic)."""
    logging.getLogger("jspipe").info(f"{step_name} {target_name} {format_duration(time.monotonic() - start_time)}")
