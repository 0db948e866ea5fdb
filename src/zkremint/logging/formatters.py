"""Log formatters for zkremint.

This module provides the JSON and text formatters used by the zkremint
logging system.
"""

import json
import time
import traceback
from typing import Optional

from .core import LogContext, LogEntry, LogFormatter


class JSONFormatter(LogFormatter):
    """JSON log formatter."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
        include_exception: bool = True,
        include_extra: bool = True,
        include_thread: bool = False,
        include_process: bool = False,
        timestamp_format: str = "iso",
        indent: Optional[int] = None,
    ):
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context
        self.include_exception = include_exception
        self.include_extra = include_extra
        self.include_thread = include_thread
        self.include_process = include_process
        self.timestamp_format = timestamp_format
        self.indent = indent

    def format(self, entry: LogEntry) -> str:
        """Format log entry as JSON."""
        data = {}

        if self.include_timestamp:
            data["timestamp"] = self._format_timestamp(entry.timestamp)

        if self.include_level:
            data["level"] = entry.level.value

        if self.include_logger:
            data["logger"] = entry.logger_name

        if self.include_context:
            data["context"] = entry.context.to_dict()

        if self.include_exception and entry.exception:
            data["exception"] = {
                "type": type(entry.exception).__name__,
                "message": str(entry.exception),
                "traceback": self._get_traceback(entry.exception),
            }

        if self.include_extra and entry.extra:
            data["extra"] = entry.extra

        if self.include_thread:
            data["thread_id"] = entry.thread_id

        if self.include_process:
            data["process_id"] = entry.process_id

        data["message"] = entry.message

        return json.dumps(data, indent=self.indent, default=str)

    def _format_timestamp(self, timestamp: float) -> str:
        """Format timestamp."""
        if self.timestamp_format == "iso":
            return (
                time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(timestamp))
                + f".{int((timestamp % 1) * 1000000):06d}Z"
            )
        elif self.timestamp_format == "unix":
            return str(timestamp)
        else:
            return time.strftime(self.timestamp_format, time.gmtime(timestamp))

    def _get_traceback(self, exception: BaseException) -> str:
        """Get traceback for exception."""
        return "".join(
            traceback.format_exception(
                type(exception), exception, exception.__traceback__
            )
        )


class TextFormatter(LogFormatter):
    """Text log formatter."""

    def __init__(
        self,
        format_string: Optional[str] = None,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
    ):
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context
        self.timestamp_format = timestamp_format
        self.format_string = format_string or self._get_default_format()

    def _get_default_format(self) -> str:
        """Get default format string."""
        parts = []

        if self.include_timestamp:
            parts.append("%(timestamp)s")

        if self.include_level:
            parts.append("[%(level)s]")

        if self.include_logger:
            parts.append("%(logger)s:")

        parts.append("%(message)s")

        return " ".join(parts)

    def format(self, entry: LogEntry) -> str:
        """Format log entry."""
        text = self.format_string % {
            "timestamp": time.strftime(
                self.timestamp_format, time.gmtime(entry.timestamp)
            ),
            "level": entry.level.value.upper(),
            "logger": entry.logger_name,
            "message": entry.message,
        }

        if self.include_context:
            context = self._format_context(entry.context)
            if context:
                text = f"{text} | {context}"

        if entry.extra:
            pairs = " ".join(f"{key}={value}" for key, value in entry.extra.items())
            text = f"{text} | {pairs}"

        if entry.exception:
            text = f"{text} | {type(entry.exception).__name__}: {entry.exception}"

        return text

    def _format_context(self, context: LogContext) -> str:
        """Format context."""
        parts = []
        if context.component:
            parts.append(f"component={context.component}")
        if context.operation:
            parts.append(f"operation={context.operation}")
        if context.request_id:
            parts.append(f"request={context.request_id}")
        if context.correlation_id:
            parts.append(f"correlation={context.correlation_id}")

        return " ".join(parts)
