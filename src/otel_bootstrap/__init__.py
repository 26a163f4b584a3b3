"""OpenTelemetry pipeline bootstrap with a shutdown guard.

This package assembles the three OpenTelemetry signal pipelines for one
process and guarantees buffered telemetry is flushed before it exits:

- TelemetryConfig: Configuration for transport, exporters, limits and bounds
- PipelineAssembler: Builds exporters, readers, processors and providers
- install / TelemetryContext: Explicit context plus the event-sink chain
- TelemetryGuard: Ordered, bounded, failure-tolerant flush and shutdown
- init_telemetry: All of the above in one call

Example:
    >>> from otel_bootstrap import TelemetryConfig, init_telemetry
    >>> config = TelemetryConfig.for_transport("http")
    >>> with init_telemetry(config) as guard:
    ...     with guard.context.start_span("work"):
    ...         structlog.get_logger("app").info("working")
"""

from __future__ import annotations

from otel_bootstrap.bootstrap import init_telemetry, load_env_file

# Configuration models
from otel_bootstrap.config import (
    BatchProcessorConfig,
    ExporterConfig,
    LoggingConfig,
    MetricReaderConfig,
    ShutdownConfig,
    TelemetryConfig,
    TraceConfig,
    TransportKind,
)

# Exceptions
from otel_bootstrap.errors import (
    AssemblyError,
    ConfigurationError,
    RegistrationError,
    TelemetryError,
)
from otel_bootstrap.exporters import (
    ExporterFactory,
    GrpcExporterFactory,
    HttpExporterFactory,
    exporter_factory_for,
)
from otel_bootstrap.guard import FlushOutcome, FlushReport, GuardState, TelemetryGuard
from otel_bootstrap.pipeline import PipelineAssembler, TelemetryPipelines
from otel_bootstrap.registry import TelemetryContext, install
from otel_bootstrap.resource import build_resource, detect_trace_resource
from otel_bootstrap.sinks import (
    ConsoleSink,
    Event,
    EventDispatcher,
    EventSink,
    LogBridgeSink,
    MetricsBridgeSink,
    TraceBridgeSink,
)

__all__ = [
    # Configuration
    "BatchProcessorConfig",
    "ExporterConfig",
    "LoggingConfig",
    "MetricReaderConfig",
    "ShutdownConfig",
    "TelemetryConfig",
    "TraceConfig",
    "TransportKind",
    # Exceptions
    "AssemblyError",
    "ConfigurationError",
    "RegistrationError",
    "TelemetryError",
    # Resource
    "build_resource",
    "detect_trace_resource",
    # Assembly
    "ExporterFactory",
    "GrpcExporterFactory",
    "HttpExporterFactory",
    "PipelineAssembler",
    "TelemetryPipelines",
    "exporter_factory_for",
    # Registry and sinks
    "ConsoleSink",
    "Event",
    "EventDispatcher",
    "EventSink",
    "LogBridgeSink",
    "MetricsBridgeSink",
    "TelemetryContext",
    "TraceBridgeSink",
    "install",
    # Guard
    "FlushOutcome",
    "FlushReport",
    "GuardState",
    "TelemetryGuard",
    # Session
    "init_telemetry",
    "load_env_file",
]
