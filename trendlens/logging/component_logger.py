"""Per-component logger wrapper and timed-operation context manager.

``ComponentLogger`` binds a fixed ``LogComponent`` and mirrors every message
to the stdlib module logger, plus to an injected ``EventLogger`` when one is
configured::

    self.log = ComponentLogger(LogComponent.ORCHESTRATOR, sink)
    await self.log.info("Cache partitioned", data={"hits": 2, "misses": 1})

``TimedOperation`` is the async context manager returned by
``ComponentLogger.timed()``; it logs the elapsed duration and the
success/failure of a block without suppressing exceptions.
"""

import logging
import time
from typing import Any, Dict, Optional

from trendlens.logging.event_logger import EventLogger
from trendlens.logging.models import LogComponent, LogLevel


class ComponentLogger:
    """Wrapper that binds a ``LogComponent`` to the optional event sink."""

    def __init__(self, component: LogComponent, sink: Optional[EventLogger] = None) -> None:
        self.component = component
        self.sink = sink
        self._stdlib = logging.getLogger(f"trendlens.{component.value}")

    async def _emit(
        self,
        level: LogLevel,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        if data:
            self._stdlib.log(level.value, "%s %s", message, data)
        else:
            self._stdlib.log(level.value, "%s", message)
        if self.sink is not None:
            await self.sink.log(
                level, self.component, message, data=data, error=error, duration_ms=duration_ms
            )

    async def debug(self, message: str, **kwargs: Any) -> None:
        await self._emit(LogLevel.DEBUG, message, **kwargs)

    async def info(self, message: str, **kwargs: Any) -> None:
        await self._emit(LogLevel.INFO, message, **kwargs)

    async def warning(self, message: str, **kwargs: Any) -> None:
        await self._emit(LogLevel.WARNING, message, **kwargs)

    async def error(
        self, message: str, error: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        await self._emit(LogLevel.ERROR, message, error=error, **kwargs)

    def timed(self, message: str) -> "TimedOperation":
        """Return an async context manager that logs duration on exit.

        Usage::

            async with self.log.timed("Batch fetch"):
                raw = await client.fetch(prompt, model, timeout_ms)
        """
        return TimedOperation(self, message)


class TimedOperation:
    """Async context manager that measures and logs operation duration.

    On successful exit, logs an INFO message with ``duration_ms``.
    On exception, logs a WARNING with ``duration_ms`` and the error, then
    re-raises (does **not** suppress it).
    """

    def __init__(self, logger: ComponentLogger, message: str) -> None:
        self.logger = logger
        self.message = message
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[int] = None

    async def __aenter__(self) -> "TimedOperation":
        self.start_time = time.perf_counter()
        await self.logger.debug(f"Starting: {self.message}")
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        assert self.start_time is not None
        self.duration_ms = int((time.perf_counter() - self.start_time) * 1000)

        if exc_type is not None:
            await self.logger.warning(
                f"Failed: {self.message}",
                error=exc_val,
                duration_ms=self.duration_ms,
            )
        else:
            await self.logger.info(
                f"Completed: {self.message}",
                duration_ms=self.duration_ms,
            )
