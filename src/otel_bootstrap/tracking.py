"""Export result tracking for the pipeline exporters.

The SDK batch processors and periodic metric readers absorb exporter
failures: a FAILURE result or a raised exception is logged by the SDK and
``force_flush`` still reports success. Each exporter is therefore wrapped so
that its failures land in an ExportStatus, which TelemetryGuard clears before
a flush and reads after it.

Examples:
    >>> status = ExportStatus()
    >>> exporter = TrackedSpanExporter(OTLPSpanExporter(), status)
    >>> status.take()  # None until an export fails
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from opentelemetry.sdk._logs.export import LogExportResult
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from otel_bootstrap.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from collections.abc import Sequence

    from opentelemetry.sdk.metrics.export import MetricsData
    from opentelemetry.sdk.trace import ReadableSpan


class ExportStatus:
    """Most recent export failure of one pipeline.

    Exports run on SDK worker threads, so every access is locked.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._error: str | None = None

    def record_failure(self, error: str) -> None:
        """Remember a failure, replacing any earlier one."""
        with self._lock:
            self._error = error

    def reset(self) -> None:
        """Forget any recorded failure."""
        with self._lock:
            self._error = None

    def take(self) -> str | None:
        """Get the recorded failure and clear it.

        Returns:
            Sanitized failure description, or None if no export failed.
        """
        with self._lock:
            error, self._error = self._error, None
        return error


def _exception_text(error: Exception) -> str:
    return sanitize_error_message(str(error) or type(error).__name__)


def _result_text(result: Any) -> str:
    return f"export returned {getattr(result, 'name', result)}"


class TrackedSpanExporter(SpanExporter):
    """Delegating span exporter recording failures into an ExportStatus."""

    def __init__(self, exporter: SpanExporter, status: ExportStatus) -> None:
        self._exporter = exporter
        self._status = status

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        try:
            result = self._exporter.export(spans)
        except Exception as e:
            self._status.record_failure(_exception_text(e))
            raise
        if result is not SpanExportResult.SUCCESS:
            self._status.record_failure(_result_text(result))
        return result

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return self._exporter.force_flush(timeout_millis)


class TrackedLogExporter:
    """Delegating log exporter recording failures into an ExportStatus.

    Duck-typed like the SDK log exporters; the batch processor only calls
    export, force_flush and shutdown.
    """

    def __init__(self, exporter: Any, status: ExportStatus) -> None:
        self._exporter = exporter
        self._status = status

    def export(self, batch: Sequence[Any]) -> LogExportResult:
        try:
            result = self._exporter.export(batch)
        except Exception as e:
            self._status.record_failure(_exception_text(e))
            raise
        if result is not LogExportResult.SUCCESS:
            self._status.record_failure(_result_text(result))
        return result

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return self._exporter.force_flush(timeout_millis)


class TrackedMetricExporter(MetricExporter):
    """Delegating metric exporter recording failures into an ExportStatus.

    Inherits the wrapped exporter's temporality and aggregation preferences
    so the periodic reader behaves exactly as with the bare exporter.
    """

    def __init__(self, exporter: MetricExporter, status: ExportStatus) -> None:
        super().__init__(
            preferred_temporality=exporter._preferred_temporality,
            preferred_aggregation=exporter._preferred_aggregation,
        )
        self._exporter = exporter
        self._status = status

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10_000,
        **kwargs: Any,
    ) -> MetricExportResult:
        try:
            result = self._exporter.export(metrics_data, timeout_millis=timeout_millis, **kwargs)
        except Exception as e:
            self._status.record_failure(_exception_text(e))
            raise
        if result is not MetricExportResult.SUCCESS:
            self._status.record_failure(_result_text(result))
        return result

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return self._exporter.force_flush(timeout_millis=timeout_millis)

    def shutdown(self, timeout_millis: float = 30_000, **kwargs: Any) -> None:
        self._exporter.shutdown(timeout_millis=timeout_millis, **kwargs)


__all__ = [
    "ExportStatus",
    "TrackedLogExporter",
    "TrackedMetricExporter",
    "TrackedSpanExporter",
]
