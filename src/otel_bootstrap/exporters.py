"""OTLP exporter factories for the gRPC and HTTP transports.

Each factory builds one exporter per signal (traces, metrics, logs) from the
per-signal ExporterConfig. Wire encoding and transport are delegated to the
upstream ``opentelemetry-exporter-otlp-proto-*`` packages.

Protocol selection:
- gRPC: exporters default to port 4317; ``certificate_file`` becomes channel
  credentials.
- HTTP: exporters default to port 4318; each exporter gets its own
  ``requests.Session``. ``accept_invalid_certs`` swaps in a session that
  skips TLS certificate validation.

Construction errors propagate unchanged; the PipelineAssembler turns them
into AssemblyError.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

import grpc
import requests
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import (
    OTLPLogExporter as OTLPLogExporterGrpc,
)
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as OTLPMetricExporterGrpc,
)
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as OTLPSpanExporterGrpc,
)
from opentelemetry.exporter.otlp.proto.http._log_exporter import (
    OTLPLogExporter as OTLPLogExporterHttp,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as OTLPMetricExporterHttp,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as OTLPSpanExporterHttp,
)
from opentelemetry.sdk.metrics import (
    Counter,
    Histogram,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from opentelemetry.sdk.metrics.export import AggregationTemporality, ConsoleMetricExporter
from opentelemetry.sdk.metrics.view import DefaultAggregation

from otel_bootstrap.config import TransportKind

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics.export import MetricExporter
    from opentelemetry.sdk.trace.export import SpanExporter

    from otel_bootstrap.config import ExporterConfig

logger = logging.getLogger(__name__)

_INSTRUMENT_KINDS = (
    Counter,
    UpDownCounter,
    Histogram,
    ObservableCounter,
    ObservableUpDownCounter,
    ObservableGauge,
)

# Cumulative temporality and default aggregation for every instrument kind
DEFAULT_TEMPORALITY: dict[type, AggregationTemporality] = {
    kind: AggregationTemporality.CUMULATIVE for kind in _INSTRUMENT_KINDS
}
DEFAULT_AGGREGATION: dict[type, Any] = {kind: DefaultAggregation() for kind in _INSTRUMENT_KINDS}


class ExporterFactory(ABC):
    """Builds the three signal exporters for one transport."""

    transport: TransportKind

    @abstractmethod
    def span_exporter(self, config: ExporterConfig) -> SpanExporter:
        """Build the trace exporter."""

    @abstractmethod
    def metric_exporter(self, config: ExporterConfig) -> MetricExporter:
        """Build the remote metric exporter."""

    @abstractmethod
    def log_exporter(self, config: ExporterConfig) -> Any:
        """Build the log exporter."""

    def console_metric_exporter(self) -> MetricExporter:
        """Build the local stdout metric exporter used for debugging."""
        return ConsoleMetricExporter(
            out=sys.stdout,
            preferred_temporality=DEFAULT_TEMPORALITY,
            preferred_aggregation=DEFAULT_AGGREGATION,
        )


def _common_kwargs(config: ExporterConfig) -> dict[str, Any]:
    """Collect the exporter kwargs shared by both transports.

    Unset values are omitted so the exporter falls back to its env vars.
    """
    kwargs: dict[str, Any] = {}
    if config.endpoint is not None:
        kwargs["endpoint"] = config.endpoint
    if config.headers:
        kwargs["headers"] = dict(config.headers)
    if config.timeout_seconds is not None:
        kwargs["timeout"] = config.timeout_seconds
    return kwargs


class GrpcExporterFactory(ExporterFactory):
    """OTLP/gRPC exporters."""

    transport = TransportKind.GRPC

    def _kwargs(self, config: ExporterConfig) -> dict[str, Any]:
        kwargs = _common_kwargs(config)
        if config.insecure is not None:
            kwargs["insecure"] = config.insecure
        if config.certificate_file is not None:
            root_certificates = Path(config.certificate_file).read_bytes()
            kwargs["credentials"] = grpc.ssl_channel_credentials(
                root_certificates=root_certificates
            )
        if config.accept_invalid_certs:
            logger.warning(
                "accept_invalid_certs has no effect on the gRPC transport",
                extra={"endpoint": config.endpoint},
            )
        return kwargs

    def span_exporter(self, config: ExporterConfig) -> SpanExporter:
        return OTLPSpanExporterGrpc(**self._kwargs(config))

    def metric_exporter(self, config: ExporterConfig) -> MetricExporter:
        return OTLPMetricExporterGrpc(
            preferred_temporality=DEFAULT_TEMPORALITY,
            preferred_aggregation=DEFAULT_AGGREGATION,
            **self._kwargs(config),
        )

    def log_exporter(self, config: ExporterConfig) -> Any:
        return OTLPLogExporterGrpc(**self._kwargs(config))


class _UnverifiedSession(requests.Session):
    """requests.Session that never validates TLS certificates.

    The OTLP HTTP exporters pass ``verify=`` on every request, which takes
    precedence over ``Session.verify``, so it is overridden per request.
    """

    def request(self, method: str | bytes, url: str | bytes, *args: Any, **kwargs: Any) -> Any:
        kwargs["verify"] = False
        return super().request(method, url, *args, **kwargs)


class HttpExporterFactory(ExporterFactory):
    """OTLP/HTTP (protobuf) exporters."""

    transport = TransportKind.HTTP

    def _session(self, config: ExporterConfig) -> requests.Session:
        if config.accept_invalid_certs:
            logger.warning(
                "TLS certificate validation disabled for OTLP/HTTP exporter",
                extra={"endpoint": config.endpoint},
            )
            return _UnverifiedSession()
        return requests.Session()

    def _kwargs(self, config: ExporterConfig) -> dict[str, Any]:
        kwargs = _common_kwargs(config)
        if config.certificate_file is not None:
            kwargs["certificate_file"] = config.certificate_file
        kwargs["session"] = self._session(config)
        return kwargs

    def span_exporter(self, config: ExporterConfig) -> SpanExporter:
        return OTLPSpanExporterHttp(**self._kwargs(config))

    def metric_exporter(self, config: ExporterConfig) -> MetricExporter:
        return OTLPMetricExporterHttp(
            preferred_temporality=DEFAULT_TEMPORALITY,
            preferred_aggregation=DEFAULT_AGGREGATION,
            **self._kwargs(config),
        )

    def log_exporter(self, config: ExporterConfig) -> Any:
        return OTLPLogExporterHttp(**self._kwargs(config))


def exporter_factory_for(transport: TransportKind) -> ExporterFactory:
    """Get the exporter factory for a transport.

    Args:
        transport: Selected transport.

    Returns:
        GrpcExporterFactory or HttpExporterFactory.
    """
    if transport is TransportKind.GRPC:
        return GrpcExporterFactory()
    return HttpExporterFactory()


__all__ = [
    "DEFAULT_AGGREGATION",
    "DEFAULT_TEMPORALITY",
    "ExporterFactory",
    "GrpcExporterFactory",
    "HttpExporterFactory",
    "exporter_factory_for",
]
