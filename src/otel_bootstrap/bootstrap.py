"""Session entry points: environment loading and init_telemetry.

Examples:
    >>> load_env_file(".env")
    >>> config = TelemetryConfig.for_transport("grpc")
    >>> with init_telemetry(config) as guard:
    ...     vendor = AppleVendor(guard.context)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, TYPE_CHECKING

from dotenv import load_dotenv

from otel_bootstrap.errors import ConfigurationError
from otel_bootstrap.guard import TelemetryGuard
from otel_bootstrap.pipeline import PipelineAssembler
from otel_bootstrap.registry import install

if TYPE_CHECKING:
    from otel_bootstrap.config import TelemetryConfig
    from otel_bootstrap.exporters import ExporterFactory

logger = logging.getLogger(__name__)


def load_env_file(path: str | Path) -> None:
    """Load a dotenv file into ``os.environ``.

    Variables already set in the environment are not overridden.

    Args:
        path: Env file path.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not valid
            text. The message names the path.
    """
    env_path = Path(path)
    if not env_path.is_file():
        raise ConfigurationError(f"Environment file not found: {env_path}")
    try:
        load_dotenv(env_path, override=False)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read environment file {env_path}: {e}") from e
    logger.debug("Loaded environment file", extra={"path": str(env_path)})


def init_telemetry(
    config: TelemetryConfig,
    *,
    publish_globals: bool = True,
    factory: ExporterFactory | None = None,
    stream: IO[str] | None = None,
) -> TelemetryGuard:
    """Assemble, install and arm a telemetry session.

    Args:
        config: Telemetry configuration.
        publish_globals: Publish the providers as OpenTelemetry globals.
        factory: Exporter factory override; defaults to the configured
            transport's factory.
        stream: Console sink stream; stdout when None.

    Returns:
        Armed TelemetryGuard exposing the TelemetryContext as ``.context``.

    Raises:
        AssemblyError: If any pipeline fails to build.
        RegistrationError: If globals were already published.
    """
    pipelines = PipelineAssembler(config, factory).assemble()
    try:
        context = install(pipelines, config, publish_globals=publish_globals, stream=stream)
    except Exception:
        pipelines.shutdown()
        raise
    return TelemetryGuard(pipelines, shutdown=config.shutdown, context=context)


__all__ = ["init_telemetry", "load_env_file"]
