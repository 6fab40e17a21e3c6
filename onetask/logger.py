"""
OneTask logging setup.

Log policy:
- logs/system.log: regular operation log (INFO+)
- logs/error.log: failures with stack traces (ERROR/CRITICAL)
- console: only what the user needs to see (WARNING+)

RotatingFileHandler keeps the files bounded.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOGS_DIR = Path(__file__).parent.parent / "logs"

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3

ROOT_LOGGER_NAME = "onetask"


def resolve_logs_dir(log_dir: Optional[Union[str, Path]] = None) -> Path:
    """Explicit argument > ONETASK_LOG_DIR > <project_root>/logs."""
    if log_dir:
        return Path(log_dir).expanduser()
    raw = os.getenv("ONETASK_LOG_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return LOGS_DIR


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    log_dir: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Initialise the logging system.

    Args:
        log_level: File log level (default INFO)
        console_level: Console log level (default WARNING)
        log_dir: Directory for the rotating log files

    Returns:
        The configured package root logger
    """
    target_dir = resolve_logs_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # handlers do the filtering

    # avoid duplicate handlers on repeated setup
    logger.handlers.clear()

    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_format = logging.Formatter(
        "[%(levelname)s] %(message)s"
    )

    # 1. System log (INFO+)
    system_handler = RotatingFileHandler(
        target_dir / "system.log",
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    system_handler.setLevel(log_level)
    system_handler.setFormatter(file_format)
    logger.addHandler(system_handler)

    # 2. Error log (ERROR+)
    error_handler = RotatingFileHandler(
        target_dir / "error.log",
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_format)
    logger.addHandler(error_handler)

    # 3. Console (WARNING+)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a module logger.

    Args:
        name: Module name, e.g. "api_client", "chat_pipeline"

    Returns:
        Logger under the package root
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
