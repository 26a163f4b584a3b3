"""CLI exit codes and stderr helpers.

Errors are printed as plain text to stderr and map to distinct exit codes,
so wrapper scripts can tell a bad invocation from a broken collector setup.

Example:
    from otel_bootstrap.cli.utils import error_exit, ExitCode

    error_exit("Environment file not found", exit_code=ExitCode.CONFIGURATION_ERROR)
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for the otel-bootstrap command."""

    SUCCESS = 0
    """Workload ran; flush failures, if any, were reported."""

    GENERAL_ERROR = 1
    """Unexpected error (catch-all)."""

    CONFIGURATION_ERROR = 3
    """Unsupported protocol, unusable env file or invalid settings."""

    ASSEMBLY_ERROR = 4
    """An exporter, reader, processor or provider could not be built."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("Environment file not found", path=".env")
        # Output: Error: Environment file not found (path=.env)
    """
    shown = {k: v for k, v in context.items() if v is not None}
    if shown:
        context_str = ", ".join(f"{k}={v}" for k, v in shown.items())
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(exit_code)


__all__ = ["ExitCode", "error", "error_exit"]
