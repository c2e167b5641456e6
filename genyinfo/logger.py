"""Loguru-based logging setup for the service and its watch thread."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

LOG_FILE = "genyinfo.log"


class _LoguruBridge(logging.Handler):
    """Routes stdlib records (watchdog, asyncio) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(log_dir: Path | None = None, level: str = "INFO") -> None:
    """Console sink at ``level``; with ``log_dir``, a rotating debug file as well."""
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level:<7}</level> | {message}",
        colorize=True,
    )

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / LOG_FILE),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {thread.name} | {name}:{line} | {message}",
            rotation="5 MB",
            retention="7 days",
            encoding="utf-8",
            enqueue=True,
        )

    # watchdog and asyncio report through stdlib logging
    logging.basicConfig(handlers=[_LoguruBridge()], level=logging.WARNING, force=True)
