"""Logging data models: LogLevel, LogComponent, LogEntry."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    """Log levels with numeric values for severity comparison.

    Values line up with the stdlib ``logging`` levels so entries can be
    mirrored to module loggers without translation.
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @property
    def name_str(self) -> str:
        """Get lowercase name for display/serialization."""
        return self.name.lower()


class LogComponent(Enum):
    """System components that emit structured events."""

    ORCHESTRATOR = "orchestrator"
    STARTUP = "startup"


@dataclass
class LogEntry:
    """Structured log entry.

    Carries the per-call correlation id, free-form context data, optional
    error details and timing.
    """

    timestamp: datetime
    level: LogLevel
    component: LogComponent
    message: str

    run_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "level_name": self.level.name_str,
            "component": self.component.value,
            "message": self.message,
            "run_id": self.run_id,
            "data": self.data,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "duration_ms": self.duration_ms,
        }

    def to_json(self) -> str:
        """Serialize to a JSON line for file logging."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_readable(self) -> str:
        """Human-readable single line for console output."""
        time_str = self.timestamp.strftime("%H:%M:%S")
        level_indicators = {
            LogLevel.DEBUG: "[DEBUG]",
            LogLevel.INFO: "[INFO]",
            LogLevel.WARNING: "[WARN]",
            LogLevel.ERROR: "[ERROR]",
            LogLevel.CRITICAL: "[CRIT]",
        }
        indicator = level_indicators.get(self.level, "[???]")
        msg = f"{indicator} [{time_str}] [{self.component.value}] {self.message}"
        if self.duration_ms:
            msg += f" ({self.duration_ms}ms)"
        return msg
