"""
Fire-and-forget telemetry.

Events, metrics and exceptions are handed to a transport on a background
task with bounded retries. Callers never wait on delivery and never see a
delivery error: an item that still fails after its last attempt is logged
and dropped.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from util.logging import logger as structured_logger, sanitize_payload

from ..core.retry import retry


@dataclass
class TelemetryItem:
    kind: str  # "event", "metric" or "exception"
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    value: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


class ITelemetryTransport(ABC):
    """Delivers one telemetry item somewhere. May raise; the sink retries."""

    @abstractmethod
    async def send(self, item: TelemetryItem) -> None:
        pass


class LoggingTransport(ITelemetryTransport):
    """Writes telemetry through the structured logger."""

    async def send(self, item: TelemetryItem) -> None:
        details = {"name": item.name, **sanitize_payload(item.properties)}
        if item.value is not None:
            details["value"] = item.value
        structured_logger.log_operation(f"telemetry.{item.kind}", "recorded", details)


class NullTransport(ITelemetryTransport):
    async def send(self, item: TelemetryItem) -> None:
        return None


class TelemetrySink:
    """
    Process-wide telemetry handle. Build one at start-up and pass it to
    the services that report.

    Example:
        >>> sink = TelemetrySink(LoggingTransport())
        >>> sink.emit_event("AIChatRequest", {"messageCount": 2})
        >>> await sink.flush()  # on shutdown
    """

    def __init__(
        self,
        transport: ITelemetryTransport,
        enabled: bool = True,
        event_attempts: int = 2,
        exception_attempts: int = 3,
        base_delay: float = 0.1,
    ):
        self.transport = transport
        self.enabled = enabled
        self.event_attempts = event_attempts
        self.exception_attempts = exception_attempts
        self.base_delay = base_delay
        self._pending: Set[asyncio.Task] = set()

    def emit_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        try:
            item = TelemetryItem("event", name, dict(properties or {}))
        except Exception as e:
            structured_logger.log_telemetry_failure("event", name, str(e))
            return
        self._submit(item, self.event_attempts)

    def emit_metric(self, name: str, value: float, properties: Optional[Dict[str, Any]] = None) -> None:
        try:
            item = TelemetryItem("metric", name, dict(properties or {}), value=float(value))
        except Exception as e:
            structured_logger.log_telemetry_failure("metric", name, str(e))
            return
        self._submit(item, self.event_attempts)

    def emit_exception(self, error: BaseException, properties: Optional[Dict[str, Any]] = None) -> None:
        try:
            props = dict(properties or {})
            props.setdefault("errorType", type(error).__name__)
            props.setdefault("errorMessage", str(error))
            item = TelemetryItem("exception", props.get("operation", type(error).__name__), props)
        except Exception as e:
            structured_logger.log_telemetry_failure("exception", type(error).__name__, str(e))
            return
        self._submit(item, self.exception_attempts)

    async def _deliver(self, item: TelemetryItem, attempts: int) -> None:
        try:
            await retry(
                lambda: self.transport.send(item),
                max_attempts=attempts,
                base_delay=self.base_delay,
                operation_name=f"telemetry.{item.kind}.{item.name}",
            )
        except Exception as e:
            structured_logger.log_telemetry_failure(item.kind, item.name, str(e))

    def _submit(self, item: TelemetryItem, attempts: int) -> None:
        if not self.enabled:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called from sync code (scripts): one inline attempt, no backoff
            asyncio.run(self._deliver(item, 1))
            return

        task = loop.create_task(self._deliver(item, attempts))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every in-flight delivery. Never raises."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
