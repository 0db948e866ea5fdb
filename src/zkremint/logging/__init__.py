"""zkremint Logging System.

Structured logging for the accumulator, claim relation and ledger: log
levels, contexts, JSON and text formatting, and console and in-memory
handlers.
"""

from .core import (
    LogConfig,
    LogContext,
    LogEntry,
    LogFormatter,
    LogHandler,
    LogLevel,
    LogManager,
    ZKRemintLogger,
    get_log_manager,
    get_logger,
    setup_logging,
    shutdown_logging,
)
from .formatters import JSONFormatter, TextFormatter
from .handlers import ConsoleHandler, MemoryHandler

__all__ = [
    # Core
    "LogLevel",
    "LogContext",
    "LogEntry",
    "LogConfig",
    "LogFormatter",
    "LogHandler",
    "LogManager",
    "ZKRemintLogger",
    "get_logger",
    "get_log_manager",
    "setup_logging",
    "shutdown_logging",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    # Handlers
    "ConsoleHandler",
    "MemoryHandler",
]
