"""
Logging setup for the whole project.
- console + file output
- daily log file rotation
- per-module logger helper
"""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from marketfeed.utils.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "marketfeed.log"

_initialized: bool = False


def setup_logging() -> None:
    """Attach console and file handlers to the root logger.

    Runs once per process; later calls are ignored.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Rotate at midnight, keep 30 days
    try:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=log_dir / LOG_FILE_NAME,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
    except OSError as exc:
        root_logger.warning("File logging disabled (%s): %s", settings.log_dir, exc)
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(file_handler)

    for noisy_logger in ("aiohttp", "asyncio", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with project logging configured.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        The configured ``logging.Logger``.
    """
    setup_logging()
    return logging.getLogger(name)
