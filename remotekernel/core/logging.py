"""
Centralized logging setup for the remote kernel client.
"""
import logging
import datetime
import json
import os
import sys
import tempfile
from typing import Any, Optional


LOGGER_NAME = "remotekernel"


def _resolve_log_dir() -> Optional[str]:
    """Return a writable log directory, or None when file logging is disabled."""
    env_dir = os.environ.get("REMOTEKERNEL_LOG_DIR")
    if not env_dir:
        return None

    candidates = [env_dir, os.path.join(tempfile.gettempdir(), "remotekernel-logs")]
    for directory in candidates:
        try:
            os.makedirs(directory, exist_ok=True)
            if os.access(directory, os.W_OK):
                return directory
        except OSError:
            continue
    return None


def setup_logging(level: str = "INFO", log_file: str = "remotekernel.log") -> logging.Logger:
    """Setup logging configuration with optional file output."""
    handlers = [logging.StreamHandler()]

    log_dir = _resolve_log_dir()
    log_path = os.path.join(log_dir, log_file) if log_dir else None
    if log_path:
        try:
            handlers.append(logging.FileHandler(log_path, mode='a', encoding='utf-8'))
        except OSError as e:
            print(f"WARNING: Cannot write to log file {log_path}: {e}", file=sys.stderr)
            log_path = None

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(f"Logging initialized - output: {log_path or 'console only'}")

    return logger


def debug_log(message: str, data: Optional[Any] = None, level: str = "INFO") -> None:
    """
    Enhanced debug logging with structured data.

    Args:
        message: The log message
        data: Optional data to log
        level: Log level (INFO, DEBUG, WARNING, ERROR)
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(log_level):
        return

    timestamp = datetime.datetime.now().strftime("%H:%M:%S.%f")[:-3]

    if data:
        if isinstance(data, dict):
            data_str = json.dumps(data, indent=2, default=str)
            logger.log(log_level, f"[{timestamp}] {message}\nData: {data_str}")
        else:
            logger.log(log_level, f"[{timestamp}] {message} - {data}")
    else:
        logger.log(log_level, f"[{timestamp}] {message}")


class LoggerMixin:
    """Mixin class to add logging capabilities to other classes."""

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f"{LOGGER_NAME}.{self.__class__.__name__}")

    def log_debug(self, message: str, data: Optional[Any] = None):
        """Log debug message."""
        debug_log(message, data, "DEBUG")

    def log_info(self, message: str, data: Optional[Any] = None):
        """Log info message."""
        debug_log(message, data, "INFO")

    def log_warning(self, message: str, data: Optional[Any] = None):
        """Log warning message."""
        debug_log(message, data, "WARNING")

    def log_error(self, message: str, data: Optional[Any] = None):
        """Log error message."""
        debug_log(message, data, "ERROR")
