"""Layered event sinks behind a single level filter.

The EventDispatcher is a stdlib logging.Handler attached to the root logger.
Its level is the one filter decision; every record that passes it is turned
into an Event and dispatched, in order, to each EventSink:

- ConsoleSink: human-readable line via structlog's ConsoleRenderer
- MetricsBridgeSink: promotes ``monotonic_counter.*``, ``counter.*`` and
  ``histogram.*`` fields to metric instruments
- TraceBridgeSink: attaches the event to the current recording span
- LogBridgeSink: routes the record into the LoggerProvider

Sinks are independent observers. A sink that raises is reported through
``Handler.handleError`` and the remaining sinks still see the event.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import IO, TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.sdk._logs import LoggingHandler
from opentelemetry.trace import Status, StatusCode

from otel_bootstrap.conventions import (
    COUNTER_PREFIX,
    EVENT_LEVEL,
    EVENT_TARGET,
    HISTOGRAM_PREFIX,
    MONOTONIC_COUNTER_PREFIX,
)

if TYPE_CHECKING:
    from opentelemetry.sdk._logs import LoggerProvider

    from otel_bootstrap.metrics import MetricRecorder

# LogRecord attributes that are not user fields
_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "taskName",
    "level",
    "timestamp",
}

# Trace ids are already carried by span/log context; never use them as labels
_CORRELATION_FIELDS = frozenset({"trace_id", "span_id"})

# Loggers whose records must not be fed back into the export path
_SDK_LOGGER_PREFIX = "opentelemetry"

_PRIMITIVES = (str, bool, int, float)


@dataclass(frozen=True)
class Event:
    """One structured log event that passed the level filter.

    Attributes:
        level: Numeric stdlib level.
        target: Logger name the event was emitted on.
        message: Rendered message.
        fields: Structured fields attached to the event.
        timestamp: Creation time (seconds since epoch).
        record: The originating stdlib LogRecord.
    """

    level: int
    target: str
    message: str
    fields: Mapping[str, Any]
    timestamp: float
    record: logging.LogRecord

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> Event:
        """Build an Event from a stdlib LogRecord."""
        fields = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}
        return cls(
            level=record.levelno,
            target=record.name,
            message=record.getMessage(),
            fields=fields,
            timestamp=record.created,
            record=record,
        )

    @property
    def level_name(self) -> str:
        """Get the level name, e.g. 'INFO'."""
        return logging.getLevelName(self.level)

    @property
    def internal(self) -> bool:
        """Check if the event was emitted by the OpenTelemetry SDK itself."""
        return self.target == _SDK_LOGGER_PREFIX or self.target.startswith(
            _SDK_LOGGER_PREFIX + "."
        )

    def primitive_fields(self) -> dict[str, Any]:
        """Get fields usable as OTel attributes (no correlation ids)."""
        return {
            k: v
            for k, v in self.fields.items()
            if isinstance(v, _PRIMITIVES) and k not in _CORRELATION_FIELDS
        }


class EventSink(ABC):
    """An observer of filtered events.

    Attributes:
        accepts_internal: Whether events from the OpenTelemetry SDK's own
            loggers are delivered to this sink.
    """

    accepts_internal: bool = True

    @abstractmethod
    def observe(self, event: Event) -> None:
        """Handle one event."""


class ConsoleSink(EventSink):
    """Writes human-readable lines to a stream (stdout by default)."""

    def __init__(self, stream: IO[str] | None = None, colors: bool = False) -> None:
        self._stream = stream
        self._renderer = structlog.dev.ConsoleRenderer(colors=colors)

    def observe(self, event: Event) -> None:
        event_dict: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(event.timestamp, tz=timezone.utc).isoformat(),
            "level": event.level_name.lower(),
            "logger": event.target,
            "event": event.message,
        }
        event_dict.update(event.fields)
        line = self._renderer(None, event.level_name.lower(), event_dict)
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(f"{line}\n")
        stream.flush()


class MetricsBridgeSink(EventSink):
    """Promotes metric-tagged fields into the metrics pipeline.

    ``monotonic_counter.<name>`` adds to a Counter, ``counter.<name>`` to an
    UpDownCounter and ``histogram.<name>`` records into a Histogram. Other
    primitive fields become the measurement's attributes. Non-numeric metric
    values are ignored.

    Examples:
        >>> log.info("apple cut", **{"monotonic_counter.apples_cut": 1, "vendor": "fruits"})
    """

    accepts_internal = False

    def __init__(self, recorder: MetricRecorder) -> None:
        self._recorder = recorder

    def observe(self, event: Event) -> None:
        measurements: list[tuple[str, str, int | float]] = []
        labels: dict[str, Any] = {}
        for key, value in event.primitive_fields().items():
            for prefix in (MONOTONIC_COUNTER_PREFIX, COUNTER_PREFIX, HISTOGRAM_PREFIX):
                if key.startswith(prefix):
                    if isinstance(value, (int, float)) and not isinstance(value, bool):
                        measurements.append((prefix, key[len(prefix) :], value))
                    break
            else:
                labels[key] = value

        for prefix, name, value in measurements:
            if prefix == MONOTONIC_COUNTER_PREFIX:
                self._recorder.increment(name, value, labels=labels)
            elif prefix == COUNTER_PREFIX:
                self._recorder.add(name, value, labels=labels)
            else:
                self._recorder.record(name, value, labels=labels)


class TraceBridgeSink(EventSink):
    """Attaches events to the current recording span.

    Events at ERROR or above also mark the span status as ERROR, so a
    failure is visible on the span even when the caller recovers from it.
    """

    accepts_internal = False

    def observe(self, event: Event) -> None:
        span = trace.get_current_span()
        if not span.is_recording():
            return
        attributes: dict[str, Any] = {
            EVENT_LEVEL: event.level_name,
            EVENT_TARGET: event.target,
        }
        attributes.update(event.primitive_fields())
        span.add_event(event.message, attributes=attributes)
        if event.level >= logging.ERROR:
            span.set_status(Status(StatusCode.ERROR, event.message))


class LogBridgeSink(EventSink):
    """Routes records into a LoggerProvider through the SDK LoggingHandler.

    Structured fields travel as log record attributes; trace correlation is
    taken from the active span by the SDK.
    """

    accepts_internal = False

    def __init__(self, logger_provider: LoggerProvider) -> None:
        self._handler = LoggingHandler(level=logging.NOTSET, logger_provider=logger_provider)

    def observe(self, event: Event) -> None:
        self._handler.emit(event.record)


class EventDispatcher(logging.Handler):
    """Single level filter followed by sequential dispatch to every sink."""

    def __init__(self, sinks: Iterable[EventSink], level: int | str = logging.INFO) -> None:
        super().__init__(level=level)
        self._sinks = tuple(sinks)

    @property
    def sinks(self) -> tuple[EventSink, ...]:
        """Get the sinks in dispatch order."""
        return self._sinks

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = Event.from_record(record)
        except Exception:
            self.handleError(record)
            return
        for sink in self._sinks:
            if event.internal and not sink.accepts_internal:
                continue
            try:
                sink.observe(event)
            except Exception:
                self.handleError(record)


__all__ = [
    "ConsoleSink",
    "Event",
    "EventDispatcher",
    "EventSink",
    "LogBridgeSink",
    "MetricsBridgeSink",
    "TraceBridgeSink",
]
