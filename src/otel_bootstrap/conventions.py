"""OpenTelemetry semantic convention keys used by otel-bootstrap.

Resource keys follow the stable service/deployment conventions. The metric
prefixes define which structured log fields the metrics bridge promotes to
instruments.
"""

from __future__ import annotations

SCHEMA_URL = "https://opentelemetry.io/schemas/1.26.0"

# Resource attributes
SERVICE_NAME = "service.name"
SERVICE_VERSION = "service.version"
DEPLOYMENT_ENVIRONMENT_NAME = "deployment.environment.name"

# Structured log field prefixes promoted to metric instruments
MONOTONIC_COUNTER_PREFIX = "monotonic_counter."
COUNTER_PREFIX = "counter."
HISTOGRAM_PREFIX = "histogram."

# Event attributes written by the trace and log bridges
EVENT_LEVEL = "level"
EVENT_TARGET = "target"

__all__ = [
    "COUNTER_PREFIX",
    "DEPLOYMENT_ENVIRONMENT_NAME",
    "EVENT_LEVEL",
    "EVENT_TARGET",
    "HISTOGRAM_PREFIX",
    "MONOTONIC_COUNTER_PREFIX",
    "SCHEMA_URL",
    "SERVICE_NAME",
    "SERVICE_VERSION",
]
