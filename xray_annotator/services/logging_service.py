"""
Logging service for the XRay Annotator.

Console output plus an optional dated log file under
~/.local/share/xray_annotator/logs/. Levels may be given as ints or as
names ("debug", "WARNING"); the config file stores names.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Optional, Union


DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "xray_annotator" / "logs"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LogLevel = Union[int, str]

_logging_initialized = False
_log_file: Optional[Path] = None


def resolve_level(log_level: LogLevel, default: int = logging.INFO) -> int:
    """Turn a level name or number into a logging level, falling back to default."""
    if isinstance(log_level, int):
        return log_level
    level = logging.getLevelName(str(log_level).strip().upper())
    return level if isinstance(level, int) else default


def log_file_for(log_dir: Path, day: Optional[date] = None) -> Path:
    """Dated log file inside log_dir, one file per day."""
    day = day or date.today()
    return log_dir / f"xray_annotator_{day.strftime('%Y%m%d')}.log"


def _attach(root_logger: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(handler)


def setup_logging(
    log_level: LogLevel = logging.INFO,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
) -> Optional[Path]:
    """
    Configure the logging system.

    Args:
        log_level: Level as a number or a name.
        log_to_file: Whether to also log to a dated file.
        log_dir: Directory for log files. Defaults to DEFAULT_LOG_DIR.

    Returns:
        The log file in use, or None when logging to the console only.

    Handlers are installed by the first call only. Later calls just apply
    the new level, so startup can log early and switch to the configured
    level once the config is loaded.
    """
    global _logging_initialized, _log_file

    if _logging_initialized:
        set_log_level(log_level)
        return _log_file

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    _attach(root_logger, logging.StreamHandler())

    if log_to_file:
        log_path = log_file_for(log_dir or DEFAULT_LOG_DIR)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            _attach(root_logger, logging.FileHandler(log_path, encoding="utf-8"))
            _log_file = log_path
        except OSError as e:
            root_logger.warning(f"Could not create log file: {e}. Logging to console only.")

    set_log_level(log_level)
    _logging_initialized = True
    return _log_file


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Usage:
        from xray_annotator.services.logging_service import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def set_log_level(log_level: LogLevel) -> int:
    """Apply a level to the root logger and all of its handlers; returns the level used."""
    level = resolve_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
    return level
