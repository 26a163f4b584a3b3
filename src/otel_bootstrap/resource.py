"""Resource descriptor: service identity attached to every signal.

The descriptor is built once from package metadata and shared by reference
across the trace, metric and log pipelines. The trace pipeline additionally
merges attributes detected from ``OTEL_RESOURCE_ATTRIBUTES`` /
``OTEL_SERVICE_NAME``, with detection bounded in time.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from opentelemetry.sdk.resources import (
    OTELResourceDetector,
    Resource,
    get_aggregated_resources,
)

from otel_bootstrap.conventions import (
    DEPLOYMENT_ENVIRONMENT_NAME,
    SCHEMA_URL,
    SERVICE_NAME,
    SERVICE_VERSION,
)

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "otel-bootstrap"
DEFAULT_ENVIRONMENT = "develop"


def package_version() -> str:
    """Get the installed package version, or '0.0.0' from a source tree."""
    try:
        return get_version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "0.0.0"


def build_resource(environment: str = DEFAULT_ENVIRONMENT) -> Resource:
    """Build the immutable resource descriptor.

    ``Resource(...)`` is used directly rather than ``Resource.create(...)`` so
    that no environment attributes leak into the static descriptor.

    Args:
        environment: Deployment environment name.

    Returns:
        Resource with service name, version and deployment environment.

    Examples:
        >>> resource = build_resource()
        >>> resource.attributes["deployment.environment.name"]
        'develop'
    """
    return Resource(
        {
            SERVICE_NAME: DISTRIBUTION_NAME,
            SERVICE_VERSION: package_version(),
            DEPLOYMENT_ENVIRONMENT_NAME: environment,
        },
        schema_url=SCHEMA_URL,
    )


def detect_trace_resource(base: Resource, timeout: float = 5.0) -> Resource:
    """Merge environment-detected attributes into the descriptor.

    Detected attributes win over the static ones. A detector that overruns
    ``timeout`` is abandoned and the base resource is kept.

    Args:
        base: Static resource descriptor.
        timeout: Detection bound in seconds.

    Returns:
        New Resource; ``base`` is left untouched.
    """
    resource = get_aggregated_resources(
        [OTELResourceDetector()],
        initial_resource=base,
        timeout=timeout,
    )
    logger.debug(
        "Trace resource detected",
        extra={"attribute_count": len(resource.attributes)},
    )
    return resource


__all__ = [
    "DEFAULT_ENVIRONMENT",
    "DISTRIBUTION_NAME",
    "build_resource",
    "detect_trace_resource",
    "package_version",
]
