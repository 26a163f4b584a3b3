"""Telemetry configuration models (Pydantic v2).

These models describe how the telemetry pipelines are assembled: which OTLP
transport to use, per-signal exporter parameters, trace limits, batching,
metric export cadence, logging, and shutdown bounds.

Endpoints and credentials are normally left unset here so the upstream OTLP
exporters read the standard ``OTEL_EXPORTER_OTLP_*`` environment variables
(typically loaded from the ``--otel`` env file).
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing_extensions import Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from otel_bootstrap.errors import ConfigurationError


class TransportKind(str, Enum):
    """OTLP transport used by every exporter in the process.

    Selected once at startup and immutable for the process lifetime.
    """

    GRPC = "grpc"
    HTTP = "http"

    @classmethod
    def parse(cls, value: str) -> TransportKind:
        """Parse a transport name.

        Matching is exact and case-sensitive; there is no default fallback.

        Args:
            value: Transport name, "grpc" or "http".

        Returns:
            The matching TransportKind.

        Raises:
            ConfigurationError: If value is not a supported transport.

        Examples:
            >>> TransportKind.parse("http")
            <TransportKind.HTTP: 'http'>
            >>> TransportKind.parse("GRPC")
            Traceback (most recent call last):
                ...
            ConfigurationError: OpenTelemetry protocol 'GRPC' not supported ...
        """
        for member in cls:
            if member.value == value:
                return member
        supported = ", ".join(repr(m.value) for m in cls)
        raise ConfigurationError(
            f"OpenTelemetry protocol {value!r} not supported (expected one of {supported})"
        )


class ExporterConfig(BaseModel):
    """Per-signal OTLP exporter parameters.

    Unset fields are not passed to the exporter, which then falls back to its
    own environment variables and defaults.

    Attributes:
        endpoint: Collector endpoint for this signal.
        timeout_seconds: Per-export timeout.
        headers: Extra request headers (e.g. authentication).
        insecure: Use a plaintext channel (gRPC only).
        certificate_file: CA bundle used to verify the collector.
        accept_invalid_certs: Skip TLS certificate validation (HTTP only).
            An explicit opt-in for self-signed development collectors; it is
            logged when used and must stay off in production.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    endpoint: str | None = Field(default=None, description="Collector endpoint")
    timeout_seconds: float | None = Field(
        default=None, gt=0, description="Per-export timeout in seconds"
    )
    headers: dict[str, str] | None = Field(default=None, description="Request headers")
    insecure: bool | None = Field(default=None, description="Plaintext gRPC channel")
    certificate_file: str | None = Field(default=None, description="CA bundle path")
    accept_invalid_certs: bool = Field(
        default=False,
        description="Disable TLS certificate validation (HTTP only)",
    )


class TraceConfig(BaseModel):
    """Trace pipeline settings.

    Sampling is always-on and ids are random; only the limits and the
    environment detection bound are tunable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attributes_per_span: int = Field(default=16, gt=0)
    max_events_per_span: int = Field(default=64, gt=0)
    env_detection_timeout_seconds: float = Field(default=5.0, gt=0)


class BatchProcessorConfig(BaseModel):
    """Configuration shared by BatchSpanProcessor and BatchLogRecordProcessor.

    Attributes:
        max_queue_size: Maximum records buffered in memory (default: 2048)
        max_export_batch_size: Records per export batch (default: 512)
        schedule_delay_millis: Export interval in ms (default: 5000)
        export_timeout_millis: Per-batch export timeout in ms (default: 30000)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_queue_size: int = Field(default=2048, gt=0)
    max_export_batch_size: int = Field(default=512, gt=0)
    schedule_delay_millis: int = Field(default=5000, gt=0)
    export_timeout_millis: int = Field(default=30000, gt=0)

    @model_validator(mode="after")
    def validate_batch_size_le_queue_size(self) -> Self:
        """Validate that batch size does not exceed queue size."""
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({self.max_export_batch_size}) "
                f"cannot exceed max_queue_size ({self.max_queue_size})"
            )
        return self


class MetricReaderConfig(BaseModel):
    """Periodic metric reader settings.

    Attributes:
        export_interval_millis: Collection/export cadence for every reader.
        export_timeout_millis: Per-export timeout.
        console_exporter: Attach a second reader exporting to stdout.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    export_interval_millis: int = Field(default=30000, gt=0)
    export_timeout_millis: int = Field(default=30000, gt=0)
    console_exporter: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Event sink configuration.

    Attributes:
        log_level: Threshold gating every sink (case-insensitive).
        colors: Colorize console output.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    log_level: str = Field(
        default="INFO",
        pattern=r"(?i)^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    colors: bool = Field(default=False)


class ShutdownConfig(BaseModel):
    """Bounds applied by the shutdown guard to every flush and shutdown call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    flush_timeout_millis: int = Field(default=5000, gt=0)
    shutdown_timeout_millis: int = Field(default=5000, gt=0)


class TelemetryConfig(BaseModel):
    """Complete configuration for a telemetry session.

    Examples:
        >>> config = TelemetryConfig(transport=TransportKind.HTTP)
        >>> config.metrics_reader.export_interval_millis
        30000
        >>> config = TelemetryConfig.for_transport("grpc")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    transport: TransportKind = Field(default=TransportKind.GRPC)
    deployment_environment: str = Field(default="develop", min_length=1)
    traces: ExporterConfig = Field(default_factory=ExporterConfig)
    metrics: ExporterConfig = Field(default_factory=ExporterConfig)
    logs: ExporterConfig = Field(default_factory=ExporterConfig)
    trace: TraceConfig = Field(default_factory=TraceConfig)
    batch_processor: BatchProcessorConfig = Field(default_factory=BatchProcessorConfig)
    metrics_reader: MetricReaderConfig = Field(default_factory=MetricReaderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    shutdown: ShutdownConfig = Field(default_factory=ShutdownConfig)

    @classmethod
    def for_transport(cls, transport: str, **overrides: Any) -> TelemetryConfig:
        """Build a config from a textual transport name.

        Args:
            transport: "grpc" or "http" (exact match).
            **overrides: Other TelemetryConfig fields.

        Returns:
            Validated TelemetryConfig.

        Raises:
            ConfigurationError: If the transport or any override is invalid.
        """
        kind = TransportKind.parse(transport)
        try:
            return cls(transport=kind, **overrides)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid telemetry configuration: {e}") from e

    def exporter_config(self, signal: str) -> ExporterConfig:
        """Get the exporter config for "traces", "metrics" or "logs"."""
        return {"traces": self.traces, "metrics": self.metrics, "logs": self.logs}[signal]


__all__ = [
    "BatchProcessorConfig",
    "ExporterConfig",
    "LoggingConfig",
    "MetricReaderConfig",
    "ShutdownConfig",
    "TelemetryConfig",
    "TraceConfig",
    "TransportKind",
]
