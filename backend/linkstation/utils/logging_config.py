"""
Logging for the Link Station backend (loguru).

- colored console sink at LOG_LEVEL
- optional daily-rotated app.log (INFO+) and error.log (ERROR+) under LOG_DIR
- stdlib logging (uvicorn, httpx, redis) routed into loguru

Modules log through a logger bound to their area, e.g. ``game_logger``,
so ``{extra[name]}`` in the format shows where a line came from.
"""

import sys
import logging
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger

from linkstation.config import Settings, settings as default_settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{function}:{line} | {message}"

# file name -> (minimum level, retention)
FILE_SINKS = {
    "app.log": ("INFO", "30 days"),
    "error.log": ("ERROR", "90 days"),
}


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real call site
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(config: Optional[Settings] = None) -> None:
    """Configure sinks. Safe to call more than once (sinks are replaced)."""
    config = config or default_settings

    loguru_logger.remove()
    loguru_logger.configure(extra={"name": "linkstation"})

    loguru_logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=config.LOG_LEVEL,
        colorize=True,
        backtrace=True,
        diagnose=config.DEBUG,
    )

    if config.LOG_TO_FILE:
        log_dir = Path(config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        for filename, (level, retention) in FILE_SINKS.items():
            loguru_logger.add(
                log_dir / filename,
                format=FILE_FORMAT,
                level=level,
                rotation="00:00",
                retention=retention,
                compression="zip",
                backtrace=True,
                diagnose=config.DEBUG,
                encoding="utf-8",
            )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def get_logger(name: str):
    """Logger bound to ``name`` (usually ``__name__``)."""
    return loguru_logger.bind(name=name)


fastapi_logger = get_logger("fastapi")
store_logger = get_logger("store")
game_logger = get_logger("game")
admin_logger = get_logger("admin")
cleanup_logger = get_logger("cleanup")


__all__ = [
    "setup_logging",
    "get_logger",
    "fastapi_logger",
    "store_logger",
    "game_logger",
    "admin_logger",
    "cleanup_logger",
]
