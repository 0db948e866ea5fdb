"""Tests for logging handlers module."""

import io
from unittest.mock import Mock

import pytest

from zkremint.logging.core import LogContext, LogEntry, LogLevel
from zkremint.logging.formatters import TextFormatter
from zkremint.logging.handlers import ConsoleHandler, MemoryHandler


def make_entry(level=LogLevel.INFO, message="Test message"):
    return LogEntry(
        timestamp=1234567890.0,
        level=level,
        message=message,
        logger_name="test.logger",
        context=LogContext(),
    )


class TestConsoleHandler:
    """Test ConsoleHandler functionality."""

    @pytest.fixture
    def console_handler(self):
        """Fixture for console handler."""
        return ConsoleHandler(io.StringIO())

    def test_console_handler_creation(self):
        """Test creating console handler."""
        handler = ConsoleHandler()

        assert handler.name == "ConsoleHandler"
        assert handler.level == LogLevel.TRACE

    def test_console_handler_emit(self, console_handler):
        """Test console handler emit."""
        mock_stream = Mock()
        console_handler.stream = mock_stream

        console_handler.emit(make_entry())

        mock_stream.write.assert_called_once()
        mock_stream.flush.assert_called()

    def test_console_handler_writes_lines(self, console_handler):
        """Test formatted output."""
        console_handler.set_formatter(TextFormatter(include_timestamp=False))
        console_handler.handle(make_entry(message="one"))
        console_handler.handle(make_entry(message="two"))
        assert console_handler.stream.getvalue() == (
            "[INFO] test.logger: one\n[INFO] test.logger: two\n"
        )

    def test_console_handler_level_filtering(self, console_handler):
        """Test console handler level filtering."""
        console_handler.set_level(LogLevel.WARNING)

        assert not console_handler.should_handle(make_entry(LogLevel.DEBUG))
        assert console_handler.should_handle(make_entry(LogLevel.WARNING))
        assert console_handler.should_handle(make_entry(LogLevel.CRITICAL))

        console_handler.handle(make_entry(LogLevel.INFO))
        assert console_handler.stream.getvalue() == ""


class TestMemoryHandler:
    """Test MemoryHandler functionality."""

    def test_memory_handler_emit(self):
        """Test storing entries."""
        handler = MemoryHandler()
        handler.emit(make_entry(message="stored"))
        logs = handler.get_logs()
        assert len(logs) == 1
        assert logs[0]["message"] == "stored"
        assert logs[0]["level"] == "info"
        assert logs[0]["logger_name"] == "test.logger"
        assert "stored" in logs[0]["formatted"]

    def test_memory_handler_max_size(self):
        """Test that the oldest entries are evicted."""
        handler = MemoryHandler(max_size=3)
        for i in range(5):
            handler.emit(make_entry(message=f"m{i}"))
        assert handler.messages() == ["m2", "m3", "m4"]

    def test_memory_handler_clear(self):
        """Test clearing the buffer."""
        handler = MemoryHandler()
        handler.emit(make_entry())
        handler.clear_logs()
        assert handler.get_logs() == []

    def test_get_logs_returns_copy(self):
        """Test that callers cannot mutate the buffer."""
        handler = MemoryHandler()
        handler.emit(make_entry())
        handler.get_logs().clear()
        assert len(handler.get_logs()) == 1
