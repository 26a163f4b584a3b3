"""Pipeline assembly: exporters wrapped in readers, processors and providers.

PipelineAssembler builds the three signal pipelines for the selected
transport:

- Metrics: remote exporter plus an optional stdout exporter, each behind its
  own PeriodicExportingMetricReader (30s interval by default). The SDK
  collects readers independently, so one failing reader does not block the
  other.
- Traces: one exporter behind a BatchSpanProcessor with always-on sampling,
  random ids, span limits, and the descriptor merged with env-detected
  resource attributes.
- Logs: one exporter behind a BatchLogRecordProcessor.

Every exporter is wrapped for export result tracking (see
otel_bootstrap.tracking) so the shutdown guard can report failed exports.

Assembly is all-or-nothing. If any component fails to build, everything
already built is shut down and AssemblyError is raised. Nothing is published
globally here; see otel_bootstrap.registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.trace import SpanLimits, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.id_generator import RandomIdGenerator
from opentelemetry.sdk.trace.sampling import ALWAYS_ON

from otel_bootstrap.errors import AssemblyError
from otel_bootstrap.exporters import exporter_factory_for
from otel_bootstrap.resource import build_resource, detect_trace_resource
from otel_bootstrap.tracking import (
    ExportStatus,
    TrackedLogExporter,
    TrackedMetricExporter,
    TrackedSpanExporter,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from opentelemetry.sdk.metrics.export import MetricReader
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import SpanProcessor

    from otel_bootstrap.config import TelemetryConfig
    from otel_bootstrap.exporters import ExporterFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryPipelines:
    """The provider triple and the processors each provider owns.

    Attributes:
        resource: Resource descriptor shared by the metric and log providers.
        tracer_provider: SDK TracerProvider.
        meter_provider: SDK MeterProvider.
        logger_provider: SDK LoggerProvider.
        span_processors: Processors attached to the tracer provider, in order.
        log_processors: Processors attached to the logger provider, in order.
        export_status: Export failure tracking keyed by (signal, index), with
            index None for the meter provider.
    """

    resource: Resource
    tracer_provider: TracerProvider
    meter_provider: MeterProvider
    logger_provider: LoggerProvider
    span_processors: tuple[SpanProcessor, ...]
    log_processors: tuple[Any, ...]
    export_status: Mapping[tuple[str, int | None], ExportStatus] = field(default_factory=dict)

    def shutdown(self) -> None:
        """Shut down all three providers, ignoring individual failures.

        Only used to unwind a session whose startup failed. Running sessions
        are shut down by TelemetryGuard.
        """
        for provider in (self.logger_provider, self.meter_provider, self.tracer_provider):
            try:
                provider.shutdown()
            except Exception:
                logger.debug("Provider shutdown failed during unwind", exc_info=True)


class PipelineAssembler:
    """Builds TelemetryPipelines for one TelemetryConfig.

    Examples:
        >>> from otel_bootstrap.config import TelemetryConfig
        >>> pipelines = PipelineAssembler(TelemetryConfig.for_transport("http")).assemble()
    """

    def __init__(
        self,
        config: TelemetryConfig,
        factory: ExporterFactory | None = None,
    ) -> None:
        """Initialize PipelineAssembler.

        Args:
            config: Telemetry configuration.
            factory: Exporter factory; defaults to the one matching
                ``config.transport``.
        """
        self._config = config
        self._factory = factory if factory is not None else exporter_factory_for(config.transport)
        self._built: list[Any] = []

    @property
    def config(self) -> TelemetryConfig:
        """Get the telemetry configuration."""
        return self._config

    def assemble(self) -> TelemetryPipelines:
        """Build the metric, trace and log pipelines.

        Returns:
            Fully built, unpublished TelemetryPipelines.

        Raises:
            AssemblyError: If any exporter, reader, processor or provider
                fails to build. Components built before the failure are shut
                down first.
        """
        self._built = []
        resource = build_resource(self._config.deployment_environment)
        status = {
            ("metrics", None): ExportStatus(),
            ("traces", 0): ExportStatus(),
            ("logs", 0): ExportStatus(),
        }

        meter_provider = self._step(
            "metrics", self._build_meter_provider, resource, status["metrics", None]
        )
        tracer_provider, span_processor = self._step(
            "traces", self._build_tracer_provider, resource, status["traces", 0]
        )
        logger_provider, log_processor = self._step(
            "logs", self._build_logger_provider, resource, status["logs", 0]
        )

        logger.info(
            "Telemetry pipelines assembled",
            extra={
                "transport": self._config.transport.value,
                "metric_interval_millis": self._config.metrics_reader.export_interval_millis,
                "console_metrics": self._config.metrics_reader.console_exporter,
            },
        )
        return TelemetryPipelines(
            resource=resource,
            tracer_provider=tracer_provider,
            meter_provider=meter_provider,
            logger_provider=logger_provider,
            span_processors=(span_processor,),
            log_processors=(log_processor,),
            export_status=status,
        )

    def _step(self, signal: str, build: Callable[..., Any], *args: Any) -> Any:
        """Run one build step, unwinding everything on failure."""
        try:
            return build(*args)
        except Exception as e:
            self._unwind()
            logger.error(
                "Telemetry pipeline assembly failed",
                extra={"signal": signal, "transport": self._config.transport.value},
            )
            raise AssemblyError(signal, self._config.transport, str(e)) from e

    def _track(self, component: Any) -> Any:
        self._built.append(component)
        return component

    def _unwind(self) -> None:
        """Shut down already-built components in reverse build order."""
        while self._built:
            component = self._built.pop()
            try:
                component.shutdown()
            except Exception:
                logger.debug("Component shutdown failed during unwind", exc_info=True)

    def _build_meter_provider(self, resource: Resource, status: ExportStatus) -> MeterProvider:
        reader_config = self._config.metrics_reader
        remote = TrackedMetricExporter(
            self._track(self._factory.metric_exporter(self._config.metrics)), status
        )
        readers: list[MetricReader] = [
            self._track(
                PeriodicExportingMetricReader(
                    exporter=remote,
                    export_interval_millis=reader_config.export_interval_millis,
                    export_timeout_millis=reader_config.export_timeout_millis,
                )
            )
        ]
        if reader_config.console_exporter:
            console = TrackedMetricExporter(
                self._track(self._factory.console_metric_exporter()), status
            )
            readers.append(
                self._track(
                    PeriodicExportingMetricReader(
                        exporter=console,
                        export_interval_millis=reader_config.export_interval_millis,
                        export_timeout_millis=reader_config.export_timeout_millis,
                    )
                )
            )
        return self._track(
            MeterProvider(
                resource=resource,
                metric_readers=readers,
                shutdown_on_exit=False,
            )
        )

    def _build_tracer_provider(
        self, resource: Resource, status: ExportStatus
    ) -> tuple[TracerProvider, BatchSpanProcessor]:
        trace_config = self._config.trace
        batch = self._config.batch_processor
        exporter = TrackedSpanExporter(
            self._track(self._factory.span_exporter(self._config.traces)), status
        )
        provider = self._track(
            TracerProvider(
                sampler=ALWAYS_ON,
                resource=detect_trace_resource(
                    resource, trace_config.env_detection_timeout_seconds
                ),
                id_generator=RandomIdGenerator(),
                span_limits=SpanLimits(
                    max_span_attributes=trace_config.max_attributes_per_span,
                    max_events=trace_config.max_events_per_span,
                ),
                shutdown_on_exit=False,
            )
        )
        processor = BatchSpanProcessor(
            exporter,
            max_queue_size=batch.max_queue_size,
            schedule_delay_millis=batch.schedule_delay_millis,
            max_export_batch_size=batch.max_export_batch_size,
            export_timeout_millis=batch.export_timeout_millis,
        )
        provider.add_span_processor(processor)
        return provider, processor

    def _build_logger_provider(
        self, resource: Resource, status: ExportStatus
    ) -> tuple[LoggerProvider, BatchLogRecordProcessor]:
        batch = self._config.batch_processor
        exporter = TrackedLogExporter(
            self._track(self._factory.log_exporter(self._config.logs)), status
        )
        provider = self._track(LoggerProvider(resource=resource, shutdown_on_exit=False))
        processor = BatchLogRecordProcessor(
            exporter,
            max_queue_size=batch.max_queue_size,
            schedule_delay_millis=batch.schedule_delay_millis,
            max_export_batch_size=batch.max_export_batch_size,
            export_timeout_millis=batch.export_timeout_millis,
        )
        provider.add_log_record_processor(processor)
        return provider, processor


__all__ = ["PipelineAssembler", "TelemetryPipelines"]
