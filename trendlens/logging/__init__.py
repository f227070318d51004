"""Structured logging for trendlens."""
from trendlens.logging.models import LogLevel, LogComponent, LogEntry
from trendlens.logging.event_logger import EventLogger
from trendlens.logging.component_logger import ComponentLogger, TimedOperation

__all__ = [
    "LogLevel", "LogComponent", "LogEntry",
    "EventLogger",
    "ComponentLogger", "TimedOperation",
]
