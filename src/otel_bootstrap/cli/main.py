"""Main entry point for the otel-bootstrap CLI.

Runs the sample apple-vendor workload with traces, metrics and logs exported
over OTLP, then flushes everything before exiting.

Order of operations:
    1. Parse ``--proto`` and build the configuration (exit 3 on failure)
    2. Load the ``--otel`` env file (exit 3 on failure)
    3. Assemble and install the pipelines (exit 4 on failure)
    4. Run the workload inside the shutdown guard
    5. Exit 0; flush failures are reported on stderr only

Example:
    $ otel-bootstrap --otel .env --proto http
    $ python -m otel_bootstrap --proto grpc --log-level debug
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from otel_bootstrap.bootstrap import init_telemetry, load_env_file
from otel_bootstrap.cli.utils import ExitCode, error, error_exit
from otel_bootstrap.config import (
    ExporterConfig,
    LoggingConfig,
    MetricReaderConfig,
    TelemetryConfig,
)
from otel_bootstrap.errors import AssemblyError, ConfigurationError
from otel_bootstrap.resource import package_version
from otel_bootstrap.workload import AppleVendor

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_config(
    proto: str,
    *,
    log_level: str = "INFO",
    accept_invalid_certs: bool = False,
    console_metrics: bool = True,
) -> TelemetryConfig:
    """Build the session configuration from command-line values.

    Raises:
        ConfigurationError: If the protocol or any value is invalid.
    """
    exporter = ExporterConfig(accept_invalid_certs=accept_invalid_certs)
    return TelemetryConfig.for_transport(
        proto,
        traces=exporter,
        metrics=exporter,
        logs=exporter,
        logging=LoggingConfig(log_level=log_level),
        metrics_reader=MetricReaderConfig(console_exporter=console_metrics),
    )


@click.command(
    name="otel-bootstrap",
    help="Run an instrumented workload exporting traces, metrics and logs over OTLP.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.option(
    "--otel",
    "env_file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=Path(".env"),
    show_default=True,
    help="The OpenTelemetry environment file.",
)
@click.option(
    "--proto",
    default="grpc",
    show_default=True,
    help="The OpenTelemetry protocol to use. <grpc|http>",
)
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Threshold applied to every event sink.",
)
@click.option(
    "--accept-invalid-certs/--verify-certs",
    default=False,
    show_default=True,
    help="Skip TLS certificate validation for OTLP/HTTP (development collectors only).",
)
@click.option(
    "--no-console-metrics",
    is_flag=True,
    default=False,
    help="Do not export metrics to stdout.",
)
@click.version_option(
    version=package_version(),
    prog_name="otel-bootstrap",
    message="%(prog)s %(version)s",
)
def cli(
    env_file: Path,
    proto: str,
    log_level: str,
    accept_invalid_certs: bool,
    no_console_metrics: bool,
) -> None:
    """Root command for the otel-bootstrap CLI."""
    try:
        config = build_config(
            proto,
            log_level=log_level,
            accept_invalid_certs=accept_invalid_certs,
            console_metrics=not no_console_metrics,
        )
    except ConfigurationError as e:
        error_exit(str(e), exit_code=ExitCode.CONFIGURATION_ERROR)

    try:
        load_env_file(env_file)
    except ConfigurationError as e:
        error_exit(str(e), exit_code=ExitCode.CONFIGURATION_ERROR)

    try:
        guard = init_telemetry(config)
    except AssemblyError as e:
        error_exit(str(e), exit_code=ExitCode.ASSEMBLY_ERROR, signal=e.signal)

    with guard:
        vendor = AppleVendor(guard.context)
        asyncio.run(vendor.my_instrumented_fun())


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the otel-bootstrap CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)
    except Exception as e:
        error(str(e))
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
