"""Structured event sink with file and in-memory outputs.

``EventLogger`` dispatches ``LogEntry`` values to JSON-lines files (written
with ``aiofiles``), an in-memory ring buffer for fast ``get_recent()``
queries, and any registered handlers.  It is fire-and-forget from the
caller's perspective: a failing output never raises into the core.
"""

import logging
from collections import deque
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

import aiofiles

from trendlens.logging.models import LogComponent, LogEntry, LogLevel
from trendlens.utils import utc_now

logger = logging.getLogger(__name__)

# Correlation id of the run executing in the current asyncio task.
_current_run_id: ContextVar[Optional[str]] = ContextVar("trendlens_run_id", default=None)


class EventLogger:
    """Structured logging sink shared by the orchestrator and its parts.

    Parameters:
        log_dir: Directory for ``events.log`` / ``errors.log``.  ``None``
            keeps events in memory only.
        min_level: Entries below this level are dropped.
        max_recent: Size of the in-memory ring buffer.
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        min_level: LogLevel = LogLevel.INFO,
        max_recent: int = 1000,
    ) -> None:
        self.log_dir: Optional[Path] = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        self.min_level = min_level

        self._recent_logs: Deque[LogEntry] = deque(maxlen=max_recent)
        self._handlers: List[Callable[[LogEntry], None]] = []

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------

    def set_context(self, run_id: Optional[str] = None) -> Token:
        """Set the correlation id attached to subsequent entries.

        The id is scoped to the current asyncio task, so concurrent runs
        each keep their own.  Pass the returned token to ``clear_context``.
        """
        return _current_run_id.set(run_id)

    def clear_context(self, token: Optional[Token] = None) -> None:
        """Restore the id that was current before ``set_context`` (or unset it)."""
        if token is not None:
            _current_run_id.reset(token)
        else:
            _current_run_id.set(None)

    def add_handler(self, handler: Callable[[LogEntry], None]) -> None:
        """Register a custom synchronous log handler."""
        self._handlers.append(handler)

    # ------------------------------------------------------------------
    # Core log method
    # ------------------------------------------------------------------

    async def log(
        self,
        level: LogLevel,
        component: LogComponent,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Record a structured event on every configured output."""
        if level.value < self.min_level.value:
            return

        entry = LogEntry(
            timestamp=utc_now(),
            level=level,
            component=component,
            message=message,
            run_id=_current_run_id.get(),
            data=data or {},
            duration_ms=duration_ms,
        )
        if error is not None:
            entry.error_type = type(error).__name__
            entry.error_message = str(error)

        self._recent_logs.append(entry)

        if self.log_dir is not None:
            try:
                await self._write_to_file(entry)
            except OSError:
                logger.warning("Failed to write event log entry", exc_info=True)

        for handler in self._handlers:
            try:
                handler(entry)
            except Exception:
                logger.debug("Event handler %r failed", handler, exc_info=True)

    # ------------------------------------------------------------------
    # Convenience methods
    # ------------------------------------------------------------------

    async def debug(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.DEBUG, component, message, **kwargs)

    async def info(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.INFO, component, message, **kwargs)

    async def warning(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.WARNING, component, message, **kwargs)

    async def error(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.ERROR, component, message, **kwargs)

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def get_recent(
        self,
        limit: int = 20,
        level: Optional[LogLevel] = None,
        component: Optional[LogComponent] = None,
        run_id: Optional[str] = None,
    ) -> List[LogEntry]:
        """Return recent entries from the in-memory ring buffer."""
        logs = list(self._recent_logs)

        if level is not None:
            logs = [entry for entry in logs if entry.level == level]
        if component is not None:
            logs = [entry for entry in logs if entry.component == component]
        if run_id is not None:
            logs = [entry for entry in logs if entry.run_id == run_id]

        return logs[-limit:]

    # ------------------------------------------------------------------
    # Private output methods
    # ------------------------------------------------------------------

    async def _write_to_file(self, entry: LogEntry) -> None:
        """Append the entry to ``events.log`` (and ``errors.log`` for ERROR+)."""
        assert self.log_dir is not None
        json_line = entry.to_json() + "\n"

        async with aiofiles.open(self.log_dir / "events.log", "a", encoding="utf-8") as f:
            await f.write(json_line)

        if entry.level.value >= LogLevel.ERROR.value:
            async with aiofiles.open(self.log_dir / "errors.log", "a", encoding="utf-8") as f:
                await f.write(json_line)
