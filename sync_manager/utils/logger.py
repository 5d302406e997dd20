"""
Logging Configuration and Utilities

Provides structured logging with file rotation, JSON formatting options,
and the per-profile activity log used by the sync core.

Author: SyncManager Project
License: MIT
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from pythonjsonlogger.json import JsonFormatter
from typing import Optional

ROOT_LOGGER_NAME = "sync_manager"

# Between INFO and WARNING, used for completed sync runs
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


class ColoredFormatter(logging.Formatter):
    """
    Custom formatter for colored console output.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'SUCCESS': '\033[92m',    # Bright green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with colors."""
        # Work on a copy so file handlers never see the escape codes
        record = logging.makeLogRecord(record.__dict__)
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_file_path: str = "logs/sync_manager.log",
    log_rotation_size: int = 10485760,  # 10MB
    log_retention_count: int = 5,
    json_format: bool = False
) -> logging.Logger:
    """
    Configure application logging.

    Sets up console and file logging with rotation, formatting, and
    configurable output options.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Enable file logging
        log_file_path: Path to log file
        log_rotation_size: Max log file size before rotation (bytes)
        log_retention_count: Number of backup log files to keep
        json_format: Use JSON formatting for logs

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler with colored output
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if json_format:
        console_formatter = JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )
    else:
        console_formatter = ColoredFormatter(
            '[%(asctime)s] %(levelname)s - %(name)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler with rotation
    if log_to_file:
        log_path = Path(log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file_path,
            maxBytes=log_rotation_size,
            backupCount=log_retention_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)

        if json_format:
            file_formatter = JsonFormatter(
                '%(asctime)s %(name)s %(levelname)s %(module)s %(funcName)s %(lineno)d %(message)s'
            )
        else:
            file_formatter = logging.Formatter(
                '[%(asctime)s] %(levelname)s - %(name)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    logger.info(f"Logging initialized at {log_level} level")
    if log_to_file:
        logger.info(f"File logging enabled: {log_file_path}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class ActivityLog:
    """
    Per-profile activity log.

    Every notable sync event (run start/end, backup failure, rotation
    failure, per-file failure) goes through here with the name of the
    profile it belongs to. Records are emitted on the application logger
    with the profile attached as ``extra["profile"]``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize activity log.

        Args:
            logger: Logger to emit on (defaults to ``sync_manager.activity``)
        """
        self.logger = logger or get_logger("activity")

    def log(self, level: int, message: str, profile_name: str = "System"):
        """Emit a message for a profile at the given level."""
        self.logger.log(
            level,
            f"[{profile_name}] {message}",
            extra={"profile": profile_name}
        )

    def info(self, message: str, profile_name: str = "System"):
        self.log(logging.INFO, message, profile_name)

    def warning(self, message: str, profile_name: str = "System"):
        self.log(logging.WARNING, message, profile_name)

    def error(self, message: str, profile_name: str = "System"):
        self.log(logging.ERROR, message, profile_name)

    def success(self, message: str, profile_name: str = "System"):
        self.log(SUCCESS, message, profile_name)
