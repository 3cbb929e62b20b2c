"""Logging setup for Issuebook.

setup_logging() takes the [logging] section of config.ini: the console level,
the log file name inside the data directory and its rotation limits. The file
always records DEBUG so a quiet console still leaves a full trail.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

if TYPE_CHECKING:
    from .config import LoggingConfig

FILE_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"

# Libraries whose INFO chatter drowns out store and monitor messages
QUIET_LOGGERS = ("watchdog", "sqlalchemy.engine", "alembic.runtime.migration")

_logging_initialized = False


def log_dir() -> Path:
    """Where issuebook.log goes: ISSUEBOOK_DATA_DIR, else beside the package."""
    env = os.environ.get("ISSUEBOOK_DATA_DIR")
    if env:
        return Path(env)
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


def _file_handler(path: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: int) -> logging.Handler:
    console = Console(theme=Theme({"logging.level.info": "bold cyan"}), stderr=True)
    handler = RichHandler(console=console, rich_tracebacks=True, show_time=False, show_path=False)
    handler.setLevel(level)
    return handler


def setup_logging(settings: Optional["LoggingConfig"] = None, directory: Optional[Path] = None) -> None:
    """Install the file and console handlers once per process.

    Without settings the LoggingConfig defaults apply.
    """
    global _logging_initialized
    if _logging_initialized:
        return

    if settings is None:
        from .config import LoggingConfig

        settings = LoggingConfig()

    directory = directory or log_dir()
    directory.mkdir(parents=True, exist_ok=True)
    console_level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(_file_handler(directory / settings.file_name, settings.max_bytes, settings.backup_count))
    root.addHandler(_console_handler(console_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_initialized = True
    logging.getLogger(__name__).debug(
        f"Logging to {directory / settings.file_name} (console level {settings.level.upper()})"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
