"""Logging configuration for the RVM matting pipeline.

Everything logs under the "rvm" logger. setup_logging() is called once by the
CLI; library code only ever asks for child loggers via get_logger().
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "rvm"


def setup_logging(
    log_dir: Path | str | None = "logs",
    log_file: str = "rvm_matting.log",
    level: int | str = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
) -> logging.Logger:
    """Configure and return the root rvm logger.

    Pass log_dir=None for console-only output.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Avoid duplicate handlers on repeat calls
    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            str(log_path / log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the rvm namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
