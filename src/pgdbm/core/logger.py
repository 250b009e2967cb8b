# src/pgdbm/core/logger.py
"""
Logging configuration module for pgdbm.

This module provides:
- Console and rotating file handlers for the ``pgdbm`` logger namespace
- Structured logging (JSON format) through python-json-logger
- Sensitive data masking on every handler
- A capture helper for tests
"""

import logging
import logging.handlers
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, Union, List

from pythonjsonlogger.json import JsonFormatter

from .config import LoggingConfig
from .constants import (
    APP_NAME,
    BYTES_PER_MB,
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FORMAT,
    DEFAULT_MAX_LOG_FILES,
    DEFAULT_MAX_LOG_SIZE_MB,
    MASK_TOKEN,
    SENSITIVE_KEYS,
)


class SensitiveDataFilter(logging.Filter):
    """Masks credential values in log messages before any handler formats them."""

    def __init__(self, keys: Optional[List[str]] = None):
        super().__init__()
        keys = keys or SENSITIVE_KEYS
        self._patterns: List[re.Pattern] = [
            re.compile(rf'({re.escape(key)}["\']?\s*[:=]\s*["\']?)([^"\'}},\s]+)', re.IGNORECASE)
            for key in keys
        ]

    def mask(self, message: str) -> str:
        for pattern in self._patterns:
            message = pattern.sub(lambda m: f"{m.group(1)}{MASK_TOKEN}", message)
        return message

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self.mask(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class StructuredJSONFormatter(JsonFormatter):
    """JSON formatter that adds timestamp, level, logger and exception fields."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord,
                   message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(record.created).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        if record.exc_info and record.exc_info[0] is not None:
            log_record['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }
            log_record.pop('exc_info', None)


def _make_formatter(json_format: bool, log_format: str = DEFAULT_LOG_FORMAT) -> logging.Formatter:
    if json_format:
        return StructuredJSONFormatter(
            fmt='%(message)s',
            json_ensure_ascii=False
        )
    return logging.Formatter(fmt=log_format, datefmt=DEFAULT_LOG_DATE_FORMAT)


def create_console_handler(
    level: Union[str, int] = logging.WARNING,
    json_format: bool = False,
    log_format: str = DEFAULT_LOG_FORMAT
) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_make_formatter(json_format, log_format))
    handler.addFilter(SensitiveDataFilter())
    return handler


def create_file_handler(
    log_file: Path,
    level: Union[str, int] = logging.INFO,
    max_bytes: int = DEFAULT_MAX_LOG_SIZE_MB * BYTES_PER_MB,
    backup_count: int = DEFAULT_MAX_LOG_FILES,
    json_format: bool = False,
    log_format: str = DEFAULT_LOG_FORMAT
) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(_make_formatter(json_format, log_format))
    handler.addFilter(SensitiveDataFilter())
    return handler


_installed_handlers: List[logging.Handler] = []


def initialize_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the ``pgdbm`` logger from a LoggingConfig.

    Calling this again replaces the handlers installed by the previous call,
    leaving handlers added by the host application alone.

    Args:
        config: Logging configuration; defaults are used when omitted

    Returns:
        The configured package logger
    """
    config = config or LoggingConfig()
    package_logger = logging.getLogger(APP_NAME)

    for handler in _installed_handlers:
        package_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    level = getattr(logging, config.level.value)
    package_logger.setLevel(level)

    if config.console_enabled:
        _installed_handlers.append(create_console_handler(
            level=level,
            json_format=config.json_format,
            log_format=config.log_format
        ))

    if config.log_file is not None:
        _installed_handlers.append(create_file_handler(
            log_file=Path(config.log_file),
            level=level,
            max_bytes=config.max_log_size_mb * BYTES_PER_MB,
            backup_count=config.max_log_files,
            json_format=config.json_format,
            log_format=config.log_format
        ))

    for handler in _installed_handlers:
        package_logger.addHandler(handler)

    return package_logger


class LogCapture:

    def __init__(self, logger_name: Optional[str] = APP_NAME, level: int = logging.DEBUG):
        self.logger_name = logger_name
        self.level = level
        self.handler: Optional[logging.Handler] = None
        self.records: List[logging.LogRecord] = []
        self._previous_level: Optional[int] = None

    def __enter__(self):
        logger = logging.getLogger(self.logger_name)

        class CapturingHandler(logging.Handler):
            def __init__(self, records):
                super().__init__()
                self.records = records

            def emit(self, record):
                self.records.append(record)

        self.handler = CapturingHandler(self.records)
        self.handler.setLevel(self.level)
        self.handler.addFilter(SensitiveDataFilter())
        self._previous_level = logger.level
        logger.setLevel(min(self.level, logger.getEffectiveLevel()))
        logger.addHandler(self.handler)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.handler:
            logger = logging.getLogger(self.logger_name)
            logger.removeHandler(self.handler)
            logger.setLevel(self._previous_level)

    def get_messages(self) -> List[str]:
        return [record.getMessage() for record in self.records]

    def contains(self, text: str) -> bool:
        return any(text in msg for msg in self.get_messages())
