"""
Logger Utilities
Centralized logging setup for LibreFollow

Fetches run on worker threads and countdowns on timer threads, so the
file and console formats carry the thread name.
"""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any


ROOT_LOGGER_NAME = "libre_follow"

THIRD_PARTY_LOGGERS = ('urllib3', 'requests', 'charset_normalizer')

_FORMATS = {
    "simple": ('%(levelname)s: %(message)s', None),
    "threaded": ('%(levelname)s [%(threadName)s] %(message)s', None),
    "detailed": ('%(asctime)s - %(name)s [%(threadName)s] - %(levelname)s - %(message)s',
                 '%Y-%m-%d %H:%M:%S'),
}

_SIZE_UNITS = {'B': 1, 'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}
_SIZE_PATTERN = re.compile(r'^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB)?$')


def _level(value: Any, fallback: int = logging.INFO) -> int:
    return getattr(logging, str(value).upper(), fallback)


def setup_logger(name: str = ROOT_LOGGER_NAME,
                 logging_config: Optional[Dict[str, Any]] = None,
                 log_level: Optional[str] = None) -> logging.Logger:
    """
    Setup centralized logger for the application

    Module loggers (`logging.getLogger(__name__)` inside the package) are
    children of ROOT_LOGGER_NAME and propagate to the handlers set up here.

    Args:
        name: Logger name
        logging_config: The `logging:` section of the app config
            (level, format, file, max_size, backup_count)
        log_level: Explicit level, wins over the config value

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    options = logging_config or {}
    level = log_level or options.get('level') or "INFO"
    logger.setLevel(_level(level))
    logger.addHandler(create_console_handler(level, options.get('format', 'simple')))

    log_file = options.get('file')
    if log_file:
        try:
            logger.addHandler(create_file_handler(
                log_file,
                max_size=str(options.get('max_size', '10MB')),
                backup_count=int(options.get('backup_count', 5)),
                log_level=level,
            ))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not set up log file {log_file}: {e}")

    configure_third_party_loggers("WARNING")
    return logger


def create_file_handler(log_file: str,
                        max_size: str = "10MB",
                        backup_count: int = 5,
                        log_level: str = "INFO") -> logging.handlers.RotatingFileHandler:
    """
    Create rotating file handler, creating its directory if needed

    Args:
        log_file: Path to log file
        max_size: Maximum file size before rotation, e.g. "10MB"
        backup_count: Number of rotated files to keep
        log_level: Log level for this handler

    Returns:
        Configured file handler
    """
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=parse_log_size(max_size), backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(_level(log_level))
    handler.setFormatter(get_formatter("detailed"))
    return handler


def create_console_handler(log_level: str = "INFO",
                           format_type: str = "simple") -> logging.StreamHandler:
    """Console handler on stdout"""
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_level(log_level))
    handler.setFormatter(get_formatter(format_type))
    return handler


def get_formatter(format_type: str = "detailed") -> logging.Formatter:
    """
    Get logging formatter

    Args:
        format_type: 'simple', 'threaded', 'detailed' or 'json'; anything
            else gets a plain timestamped format

    Returns:
        Logging formatter
    """
    if format_type == "json":
        return JSONFormatter()
    fmt, datefmt = _FORMATS.get(format_type, ('%(asctime)s - %(levelname)s - %(message)s', None))
    return logging.Formatter(fmt, datefmt=datefmt)


def parse_log_size(size_str: str) -> int:
    """
    Parse a size such as "10MB", "512KB" or "1.5 GB" to bytes

    Raises:
        ValueError: unrecognised size string
    """
    match = _SIZE_PATTERN.match(size_str.strip().upper())
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit or 'B'])


def configure_third_party_loggers(level: str = "WARNING"):
    """Quieten HTTP library loggers"""
    numeric_level = _level(level, logging.WARNING)
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(numeric_level)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging, one object per line
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)
