"""
Logging configuration: console output plus rotating app and error log files.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%d.%m.%Y %H:%M:%S"


def resolve_log_level(level_name: str) -> int:
    """
    Converts a level name such as 'info' into the logging constant.

    :raises ValueError: If the name is not a known level.
    """
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")
    return level


def configure_logging(
    level_name: str = "INFO",
    log_dir: Optional[Path] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 15,
) -> None:
    """
    Installs the root handlers.

    :param level_name: Root log level.
    :param log_dir: Directory for app.log and error.log; console only when None.
    :param max_bytes: Rotation size for each file.
    :param backup_count: Rotated files to keep.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers = [console]

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        app_file = RotatingFileHandler(
            log_dir / "app.log", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        app_file.setFormatter(formatter)

        error_file = RotatingFileHandler(
            log_dir / "error.log", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)
        handlers.extend([app_file, error_file])

    logging.basicConfig(level=resolve_log_level(level_name), handlers=handlers, force=True)

    # docker and urllib3 are chatty at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)
