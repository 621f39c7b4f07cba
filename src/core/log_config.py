"""Loguru sink configuration shared by the API and CLI entry points."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from config import Settings


def configure_logging(settings: Settings, console_level: str | None = None) -> None:
    """Replace the default loguru sink with stderr plus an optional log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=console_level or settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {name}:{line} - {message}",
    )

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
            enqueue=True,
        )
