"""Logging utilities for hookgate."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


_LOG_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "asctime",
    "stacklevel",
    "taskName",
}

LOG_LEVEL_ENV = "HOOKGATE_LOG_LEVEL"


class StructuredFormatter(logging.Formatter):
    """Formatter with ISO timestamps and the record's ``extra`` fields as JSON."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _LOG_RECORD_FIELDS and not key.startswith("_")
        }
        if extras:
            try:
                serialized = json.dumps(extras, sort_keys=True, ensure_ascii=True, default=str)
            except (TypeError, ValueError):
                serialized = str(extras)
            return f"{message} | {serialized}"
        return message


def _find_console_handler(logger: logging.Logger) -> Optional[logging.Handler]:
    # FileHandler subclasses StreamHandler; only a plain stream counts as console.
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(
            handler, logging.FileHandler
        ):
            return handler
    return None


class HookgateLogger:
    """Logger for hookgate."""

    def __init__(self, name: str = "hookgate", level_name: Optional[str] = None):
        self.logger = logging.getLogger(name)
        level_name = (level_name or os.getenv(LOG_LEVEL_ENV, "WARNING")).upper()
        level = getattr(logging, level_name, logging.WARNING)
        # File handlers capture debug output; the console honours the configured level.
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        self._console_handler: Optional[logging.Handler] = _find_console_handler(self.logger)
        if self._console_handler is None:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            self.logger.addHandler(console_handler)
            self._console_handler = console_handler
        self._console_handler.setLevel(level)

        self._file_handler: Optional[logging.Handler] = None
        self._file_handler_path: Optional[Path] = None

    @property
    def console_level(self) -> int:
        """Level currently applied to console output."""
        if self._console_handler is None:
            return logging.WARNING
        return self._console_handler.level

    def set_console_level(self, level_name: str) -> None:
        """Change the console level, ignoring unknown level names."""
        level = getattr(logging, level_name.upper(), None)
        if not isinstance(level, int) or self._console_handler is None:
            self.logger.warning(f"Unknown log level: {level_name}")
            return
        self._console_handler.setLevel(level)

    def attach_file_handler(self, log_file: Path) -> Path:
        """Attach or replace a file handler for logging to disk."""
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if self._file_handler and self._file_handler_path == log_file:
            return log_file

        if self._file_handler:
            try:
                self.logger.removeHandler(self._file_handler)
                self._file_handler.close()
            except (ValueError, RuntimeError):
                pass

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter("%(asctime)s [%(levelname)s] %(message)s"))
        self.logger.addHandler(file_handler)
        self._file_handler = file_handler
        self._file_handler_path = log_file
        return log_file

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        self.logger.exception(message, *args, **kwargs)


# Global logger instance
_logger: Optional[HookgateLogger] = None


def get_logger() -> HookgateLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = HookgateLogger()
    return _logger


def init_logger(level_name: Optional[str] = None, log_file: Optional[Path] = None) -> HookgateLogger:
    """Initialize the global logger, optionally mirroring records to a file."""
    logger = get_logger()
    if level_name:
        logger.set_console_level(level_name)
    if log_file:
        logger.attach_file_handler(log_file)
        logger.debug(f"[logging] File logging enabled at {log_file}")
    return logger
