"""Shared test fixtures for otel-bootstrap.

Provides OpenTelemetry/structlog/root-logger isolation between tests and an
in-memory exporter factory, so full pipelines can be assembled without a
collector.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any

import pytest
from opentelemetry.sdk._logs.export import LogExportResult
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from otel_bootstrap.config import ShutdownConfig, TelemetryConfig, TransportKind
from otel_bootstrap.exporters import (
    DEFAULT_AGGREGATION,
    DEFAULT_TEMPORALITY,
    ExporterFactory,
)


class RecordingMetricExporter(MetricExporter):
    """Metric exporter keeping every export in memory.

    Set ``flush_error`` to make force_flush raise and ``export_error`` to make
    export raise.
    """

    def __init__(self) -> None:
        super().__init__(
            preferred_temporality=DEFAULT_TEMPORALITY,
            preferred_aggregation=DEFAULT_AGGREGATION,
        )
        self.exported: list[Any] = []
        self.flush_error: Exception | None = None
        self.export_error: Exception | None = None
        self.shutdown_called = False

    def export(self, metrics_data: Any, timeout_millis: float = 10_000, **kwargs: Any) -> Any:
        if self.export_error is not None:
            raise self.export_error
        self.exported.append(metrics_data)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        if self.flush_error is not None:
            raise self.flush_error
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs: Any) -> None:
        self.shutdown_called = True

    def metric_names(self) -> set[str]:
        """Get the names of every exported metric."""
        names: set[str] = set()
        for data in self.exported:
            for resource_metrics in data.resource_metrics:
                for scope_metrics in resource_metrics.scope_metrics:
                    names.update(m.name for m in scope_metrics.metrics)
        return names


class RecordingLogExporter:
    """Log exporter keeping every exported log record in memory.

    Set ``result`` to FAILURE to simulate a collector rejecting the batch.
    """

    def __init__(self) -> None:
        self.records: list[Any] = []
        self.result = LogExportResult.SUCCESS
        self.shutdown_called = False

    def export(self, batch: Any) -> LogExportResult:
        self.records.extend(batch)
        return self.result

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return True

    def shutdown(self) -> None:
        self.shutdown_called = True

    def bodies(self) -> list[Any]:
        """Get the body of every exported record."""
        return [getattr(item, "log_record", item).body for item in self.records]


class FakeExporterFactory(ExporterFactory):
    """Exporter factory returning in-memory exporters.

    Args:
        fail_on: Signal ("traces", "metrics" or "logs") whose exporter
            construction raises.
    """

    transport = TransportKind.HTTP

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.spans = InMemorySpanExporter()
        self.metrics = RecordingMetricExporter()
        self.console_metrics = RecordingMetricExporter()
        self.logs = RecordingLogExporter()

    def _check(self, signal: str) -> None:
        if self.fail_on == signal:
            raise ValueError(f"cannot build {signal} exporter")

    def span_exporter(self, config: Any) -> InMemorySpanExporter:
        self._check("traces")
        return self.spans

    def metric_exporter(self, config: Any) -> RecordingMetricExporter:
        self._check("metrics")
        return self.metrics

    def log_exporter(self, config: Any) -> RecordingLogExporter:
        self._check("logs")
        return self.logs

    def console_metric_exporter(self) -> RecordingMetricExporter:
        return self.console_metrics


@pytest.fixture(autouse=True)
def reset_otel_global_state() -> Generator[None, None, None]:
    """Reset OpenTelemetry global providers and the publish flag.

    Without this, a test that publishes globals makes every later publish
    fail with RegistrationError (and the SDK refuse to override).

    Yields:
        None after resetting state.
    """
    from opentelemetry import metrics, trace
    from opentelemetry._logs import _internal as logs_internal
    from opentelemetry.metrics._internal import _ProxyMeterProvider
    from opentelemetry.trace import ProxyTracerProvider

    from otel_bootstrap.registry import _reset_registry

    def reset() -> None:
        trace._TRACER_PROVIDER_SET_ONCE._done = False
        trace._TRACER_PROVIDER = ProxyTracerProvider()
        metrics._internal._METER_PROVIDER_SET_ONCE._done = False
        metrics._internal._METER_PROVIDER = _ProxyMeterProvider()
        logs_internal._LOGGER_PROVIDER_SET_ONCE._done = False
        logs_internal._LOGGER_PROVIDER = None
        _reset_registry()

    reset()
    yield
    reset()


@pytest.fixture(autouse=True)
def isolate_root_logger() -> Generator[None, None, None]:
    """Remove handlers added to the root logger and restore its level.

    Yields:
        None after the test completes.
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture(autouse=True)
def reset_structlog_after_test() -> Generator[None, None, None]:
    """Reset structlog configuration after each test.

    Yields:
        None after test completes.
    """
    import structlog

    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_factory() -> FakeExporterFactory:
    """Create an in-memory exporter factory."""
    return FakeExporterFactory()


@pytest.fixture
def fake_factory_cls() -> type[FakeExporterFactory]:
    """Get the FakeExporterFactory class for tests needing custom instances."""
    return FakeExporterFactory


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    """Create a TelemetryConfig with short shutdown bounds.

    Returns:
        TelemetryConfig over HTTP.
    """
    return TelemetryConfig(
        transport=TransportKind.HTTP,
        shutdown=ShutdownConfig(flush_timeout_millis=2000, shutdown_timeout_millis=2000),
    )
