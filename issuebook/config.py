"""Config management for Issuebook.

Reads `config.ini` from the data directory (project root unless
ISSUEBOOK_DATA_DIR is set).
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, issuebook.db, issuebook.log).
DATA_DIR = pathlib.Path(os.environ.get("ISSUEBOOK_DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"
DEFAULT_DB_PATH = DATA_DIR / "issuebook.db"


@dataclasses.dataclass
class DatabaseConfig:
    # None means an in-memory database
    path: Optional[pathlib.Path] = None


@dataclasses.dataclass
class AutosaveConfig:
    delay_seconds: float = 3.0


@dataclasses.dataclass
class FilterConfig:
    recent_days: int = 7


@dataclasses.dataclass
class MonitoringConfig:
    enabled: bool = True
    debounce_seconds: float = 1.0


@dataclasses.dataclass
class LoggingConfig:
    level: str = "INFO"
    file_name: str = "issuebook.log"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5


@dataclasses.dataclass
class IssuebookConfig:
    database: DatabaseConfig = dataclasses.field(default_factory=DatabaseConfig)
    autosave: AutosaveConfig = dataclasses.field(default_factory=AutosaveConfig)
    filters: FilterConfig = dataclasses.field(default_factory=FilterConfig)
    monitoring: MonitoringConfig = dataclasses.field(default_factory=MonitoringConfig)
    logging: LoggingConfig = dataclasses.field(default_factory=LoggingConfig)

    @property
    def database_path(self) -> Optional[pathlib.Path]:
        return self.database.path


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config(config_path: Optional[pathlib.Path] = None) -> IssuebookConfig:
    """Load configuration from config.ini.

    Relative database paths are resolved against the config file's directory.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    raw_db = parser.get("database", "path", fallback=str(DEFAULT_DB_PATH)).strip()
    if raw_db in ("", ":memory:"):
        db_path = None
    else:
        db_path = pathlib.Path(raw_db).expanduser()
        if not db_path.is_absolute():
            db_path = path.parent / db_path

    autosave = AutosaveConfig(
        delay_seconds=parser.getfloat("autosave", "delay_seconds", fallback=3.0),
    )
    if autosave.delay_seconds < 0:
        logger.warning(
            f"Negative autosave delay {autosave.delay_seconds} in {path}, using 0"
        )
        autosave.delay_seconds = 0.0

    filters = FilterConfig(
        recent_days=parser.getint("filters", "recent_days", fallback=7),
    )

    monitoring = MonitoringConfig(
        enabled=_parse_bool(
            parser.get("monitoring", "enabled", fallback="true"), True
        ),
        debounce_seconds=parser.getfloat(
            "monitoring", "debounce_seconds", fallback=1.0
        ),
    )

    log_cfg = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        file_name=parser.get("logging", "file_name", fallback="issuebook.log"),
        max_bytes=parser.getint("logging", "max_bytes", fallback=10 * 1024 * 1024),
        backup_count=parser.getint("logging", "backup_count", fallback=5),
    )

    return IssuebookConfig(
        database=DatabaseConfig(path=db_path),
        autosave=autosave,
        filters=filters,
        monitoring=monitoring,
        logging=log_cfg,
    )


_cached_config: Optional[IssuebookConfig] = None


def get_config() -> IssuebookConfig:
    """Return the cached config singleton. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None


def write_default_config(
    config_path: Optional[pathlib.Path] = None,
    db_path: Optional[pathlib.Path] = None,
) -> pathlib.Path:
    """Write a config.ini with default settings and return its path."""
    path = config_path or DEFAULT_CONFIG_PATH

    parser = configparser.ConfigParser()
    parser["database"] = {"path": str(db_path or DEFAULT_DB_PATH)}
    parser["autosave"] = {"delay_seconds": "3"}
    parser["filters"] = {"recent_days": "7"}
    parser["monitoring"] = {
        "enabled": "true",
        "debounce_seconds": "1",
    }
    parser["logging"] = {"level": "INFO"}

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle)
    return path
