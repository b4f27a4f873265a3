"""Pluggable logging with a level filter and a process-wide logger."""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, TextIO


class LogLevel(IntEnum):
    """Severity of a log message."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4
    NONE = 5


class LogHandler(ABC):
    """Receives log messages; subclass and register to change where logs go."""

    @abstractmethod
    def log(self, file: str, line: int, level: LogLevel, message: str) -> None:
        """Handle one log message."""


class DefaultLogHandler(LogHandler):
    """Writes messages as "[LEVEL] file:line: message" lines to a stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def log(self, file: str, line: int, level: LogLevel, message: str) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(f"[{LogLevel(level).name}] {file}:{line}: {message}\n")
        stream.flush()


class Logger:
    """Holds the active handler and the minimum level."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._level = LogLevel.INFO
        self._handler: LogHandler = DefaultLogHandler()

    @property
    def level(self) -> LogLevel:
        return self._level

    def set_level(self, level: LogLevel) -> None:
        self._level = LogLevel(level)

    def register_handler(self, handler: LogHandler) -> None:
        with self._lock:
            self._handler = handler if handler is not None else DefaultLogHandler()

    def unregister_handler(self) -> LogHandler:
        """Restore the default handler and return the one it replaced."""
        with self._lock:
            previous = self._handler
            self._handler = DefaultLogHandler()
        return previous

    def log(self, file: str, line: int, level: LogLevel, message: str) -> None:
        """Pass a message to the handler without level filtering."""
        with self._lock:
            handler = self._handler
        handler.log(file, line, level, message)


_logger = Logger()


def get_logger() -> Logger:
    """Return the process-wide logger."""
    return _logger


def register_log_handler(handler: LogHandler) -> None:
    """Replace the active log handler."""
    _logger.register_handler(handler)


def unregister_log_handler() -> LogHandler:
    """Restore the default log handler and return the handler it replaced."""
    previous = _logger.unregister_handler()
    return previous


def set_log_level(level: LogLevel) -> None:
    """Drop messages below the given level."""
    _logger.set_level(level)


def log(file: str, line: int, level: LogLevel, fmt: str, *args: Any) -> None:
    """Format a message printf-style and log it if its level is enabled."""
    if LogLevel(level) < _logger.level:
        return
    message = fmt % args if args else fmt
    _logger.log(file, line, level, message)