"""
Logging for the school media portal: console plus a rotating log file.

LOG_LEVEL and LOG_FILE may be set in the environment; an empty LOG_FILE
disables file logging.
"""
import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Libraries whose INFO output drowns request logs
QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "multipart")


def setup_logger(
    name: str = "school_media",
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Set up a logger with a stdout handler and, if possible, a rotating file handler.

    Args:
        name: Logger name
        log_file: Path to log file (if None, only console logging)
        level: Logging level
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            logger.warning(f"File logging disabled, cannot open {log_file}: {e}")
            return logger
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def _configured_log_file() -> Optional[Path]:
    value = os.getenv("LOG_FILE")
    if value is None:
        return Path(__file__).parent.parent / "logs" / "app.log"
    return Path(value) if value.strip() else None


logger = setup_logger(
    name="school_media",
    log_file=_configured_log_file(),
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
)
