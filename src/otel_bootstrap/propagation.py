"""W3C Trace Context propagation.

Installs the W3C Trace Context propagator (traceparent/tracestate headers)
as the process-wide text map propagator and provides carrier helpers for
crossing process boundaries.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry.propagate import set_global_textmap
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

if TYPE_CHECKING:
    from opentelemetry.context import Context
    from opentelemetry.propagators.textmap import TextMapPropagator

logger = logging.getLogger(__name__)


def configure_propagator() -> TraceContextTextMapPropagator:
    """Create the W3C Trace Context propagator and register it globally.

    Returns:
        The installed propagator.
    """
    propagator = TraceContextTextMapPropagator()
    set_global_textmap(propagator)
    logger.debug("Configured W3C Trace Context propagator")
    return propagator


def inject_headers(
    propagator: TextMapPropagator,
    ctx: Context | None = None,
) -> dict[str, str]:
    """Create headers carrying the trace context.

    Args:
        propagator: Propagator to inject with.
        ctx: Optional context to inject. Uses current context if not provided.

    Returns:
        Dictionary with traceparent (and tracestate if set) headers; empty
        when no span is active.

    Examples:
        >>> with context.start_span("request"):
        ...     headers = inject_headers(context.propagator)
        >>> "traceparent" in headers
        True
    """
    carrier: dict[str, str] = {}
    propagator.inject(carrier, context=ctx)
    return carrier


def extract_context(propagator: TextMapPropagator, carrier: dict[str, str]) -> Context:
    """Extract trace context from a carrier.

    Args:
        propagator: Propagator to extract with.
        carrier: Dictionary containing headers to extract from.

    Returns:
        Context with the extracted remote span as parent.
    """
    return propagator.extract(carrier)


__all__ = ["configure_propagator", "extract_context", "inject_headers"]
