"""Provider registry: the explicit telemetry context and the event-sink chain.

install() turns assembled pipelines into a TelemetryContext that call sites
receive explicitly. It can also publish the three providers as the
OpenTelemetry globals for third-party instrumentation; that publish may
happen once per process.

The context owns the EventDispatcher attached to the root logger. Every
structlog or stdlib log event passes its single level filter and is then
observed by the console, metrics, trace and log sinks in that order.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING, Any

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.trace import Status, StatusCode

from otel_bootstrap.conventions import SERVICE_NAME, SERVICE_VERSION
from otel_bootstrap.errors import RegistrationError
from otel_bootstrap.logging import configure_logging
from otel_bootstrap.metrics import MetricRecorder
from otel_bootstrap.propagation import configure_propagator
from otel_bootstrap.sanitization import sanitize_error_message
from otel_bootstrap.sinks import (
    ConsoleSink,
    EventDispatcher,
    LogBridgeSink,
    MetricsBridgeSink,
    TraceBridgeSink,
)

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.metrics import Meter
    from opentelemetry.propagators.textmap import TextMapPropagator
    from opentelemetry.trace import Span, Tracer

    from otel_bootstrap.config import TelemetryConfig
    from otel_bootstrap.pipeline import TelemetryPipelines

logger = logging.getLogger(__name__)

_publish_lock = threading.Lock()
_published = False


class TelemetryContext:
    """Handles to the installed pipelines, passed explicitly to call sites.

    Attributes:
        tracer: Tracer from the session's TracerProvider.
        meter: Meter from the session's MeterProvider.
        recorder: MetricRecorder on ``meter``.
        propagator: W3C Trace Context propagator.
        dispatcher: EventDispatcher attached to the root logger.

    Examples:
        >>> with context.start_span("checkout", {"cart.items": 3}) as span:
        ...     structlog.get_logger("shop").info("paid")
    """

    def __init__(
        self,
        tracer: Tracer,
        meter: Meter,
        propagator: TextMapPropagator,
        dispatcher: EventDispatcher,
        recorder: MetricRecorder | None = None,
    ) -> None:
        self.tracer = tracer
        self.meter = meter
        self.recorder = recorder if recorder is not None else MetricRecorder(meter)
        self.propagator = propagator
        self.dispatcher = dispatcher
        self._previous_root_level = logging.WARNING
        self._attached = False

    @property
    def attached(self) -> bool:
        """Check if the dispatcher is attached to the root logger."""
        return self._attached

    def attach(self) -> None:
        """Add the dispatcher to the root logger, opening it to the threshold."""
        if self._attached:
            return
        root = logging.getLogger()
        self._previous_root_level = root.level
        root.addHandler(self.dispatcher)
        root.setLevel(self.dispatcher.level)
        self._attached = True

    def detach(self) -> None:
        """Remove the dispatcher from the root logger and restore its level.

        Safe to call more than once.
        """
        if not self._attached:
            return
        root = logging.getLogger()
        root.removeHandler(self.dispatcher)
        root.setLevel(self._previous_root_level)
        self._attached = False

    @contextmanager
    def start_span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[Span, None, None]:
        """Start a span as the current span.

        An exception escaping the block sets the span status to ERROR with a
        sanitized description and is re-raised.

        Args:
            name: Span name.
            attributes: Optional attributes to set on the span.

        Yields:
            The started span.
        """
        with self.tracer.start_as_current_span(
            name,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            if attributes:
                for key, value in attributes.items():
                    span.set_attribute(key, value)
            try:
                yield span
            except Exception as e:
                sanitized = sanitize_error_message(str(e))
                span.set_status(Status(StatusCode.ERROR, sanitized))
                span.set_attribute("exception.type", type(e).__name__)
                span.set_attribute("exception.message", sanitized)
                raise


def _publish(pipelines: TelemetryPipelines) -> None:
    global _published
    with _publish_lock:
        if _published:
            raise RegistrationError(
                "OpenTelemetry global providers were already published in this process"
            )
        trace.set_tracer_provider(pipelines.tracer_provider)
        metrics.set_meter_provider(pipelines.meter_provider)
        set_logger_provider(pipelines.logger_provider)
        _published = True


def _reset_registry() -> None:
    """Forget a previous global publish. Test use only."""
    global _published
    with _publish_lock:
        _published = False


def install(
    pipelines: TelemetryPipelines,
    config: TelemetryConfig,
    *,
    publish_globals: bool = True,
    stream: IO[str] | None = None,
) -> TelemetryContext:
    """Build the TelemetryContext and attach the event-sink chain.

    Args:
        pipelines: Assembled, unpublished pipelines.
        config: Telemetry configuration (logging threshold and colors).
        publish_globals: Also publish the providers as OpenTelemetry globals.
        stream: Console sink output stream; stdout when None.

    Returns:
        Attached TelemetryContext.

    Raises:
        RegistrationError: If ``publish_globals`` is set and the globals were
            already published in this process.
    """
    propagator = configure_propagator()
    configure_logging()

    scope = str(pipelines.resource.attributes.get(SERVICE_NAME, "otel-bootstrap"))
    version = str(pipelines.resource.attributes.get(SERVICE_VERSION, "0.0.0"))
    tracer = pipelines.tracer_provider.get_tracer(scope, version)
    meter = pipelines.meter_provider.get_meter(scope, version)

    level = logging.getLevelName(config.logging.log_level.upper())
    recorder = MetricRecorder(meter)
    dispatcher = EventDispatcher(
        [
            ConsoleSink(stream=stream, colors=config.logging.colors),
            MetricsBridgeSink(recorder),
            TraceBridgeSink(),
            LogBridgeSink(pipelines.logger_provider),
        ],
        level=level,
    )
    context = TelemetryContext(tracer, meter, propagator, dispatcher, recorder)

    # publish last: a failed install leaves the globals untouched
    if publish_globals:
        _publish(pipelines)
    context.attach()

    logger.debug(
        "Telemetry context installed",
        extra={"published_globals": publish_globals, "log_level": level},
    )
    return context


__all__ = ["TelemetryContext", "install"]
