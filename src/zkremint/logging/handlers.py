"""Log handlers for zkremint.

This module provides the console and in-memory handlers for the zkremint
logging system.
"""

import sys
import threading
from typing import Any, Dict, List

from .core import LogEntry, LogHandler


class ConsoleHandler(LogHandler):
    """Console log handler."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, entry: LogEntry) -> None:
        """Emit log entry to console."""
        with self._lock:
            self.stream.write(self.format(entry) + "\n")
            self.stream.flush()

    def close(self) -> None:
        """Close handler."""
        with self._lock:
            if self.stream not in (sys.stdout, sys.stderr):
                self.stream.flush()


class MemoryHandler(LogHandler):
    """Memory log handler.

    Keeps the most recent ``max_size`` entries; tests attach one to inspect
    what a component logged.
    """

    def __init__(self, max_size: int = 1000):
        super().__init__()
        self.max_size = max_size
        self.buffer: List[Dict[str, Any]] = []

    def emit(self, entry: LogEntry) -> None:
        """Emit log entry to memory."""
        with self._lock:
            self.buffer.append(
                {
                    "timestamp": entry.timestamp,
                    "level": entry.level.value,
                    "message": entry.message,
                    "logger_name": entry.logger_name,
                    "extra": dict(entry.extra),
                    "formatted": self.format(entry),
                }
            )

            # Remove old entries if buffer is full
            if len(self.buffer) > self.max_size:
                self.buffer.pop(0)

    def get_logs(self) -> List[Dict[str, Any]]:
        """Get all logs from memory."""
        with self._lock:
            return self.buffer.copy()

    def messages(self) -> List[str]:
        """Return just the raw messages, oldest first."""
        with self._lock:
            return [item["message"] for item in self.buffer]

    def clear_logs(self) -> None:
        """Clear all logs from memory."""
        with self._lock:
            self.buffer.clear()

    def close(self) -> None:
        """Close handler."""
        with self._lock:
            self.buffer.clear()
