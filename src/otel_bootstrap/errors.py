"""Exception hierarchy for otel-bootstrap.

All exceptions inherit from TelemetryError, so callers can catch every
bootstrap failure with a single except clause.

Exception Hierarchy:
    TelemetryError (base)
    ├── ConfigurationError  # Bad transport name, env file, or config values
    ├── AssemblyError       # Exporter/reader/processor construction failed
    └── RegistrationError   # Global providers already published

Flush and export failures are deliberately absent: they are reported by the
shutdown guard and never raised.

Example:
    >>> from otel_bootstrap.errors import ConfigurationError
    >>> raise ConfigurationError("OpenTelemetry protocol 'bogus' not supported")
    Traceback (most recent call last):
        ...
    ConfigurationError: OpenTelemetry protocol 'bogus' not supported
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from otel_bootstrap.config import TransportKind


class TelemetryError(Exception):
    """Base exception for all otel-bootstrap errors."""

    pass


class ConfigurationError(TelemetryError):
    """Raised when startup configuration is invalid.

    Covers unknown transport names, missing or unreadable environment files,
    and configuration values that fail validation. Always fatal: the process
    must not proceed to instrumentation.
    """

    pass


class AssemblyError(TelemetryError):
    """Raised when a telemetry pipeline cannot be constructed.

    Attributes:
        signal: Signal whose pipeline failed ("traces", "metrics" or "logs").
        transport: Transport that was being assembled.

    Example:
        >>> raise AssemblyError("metrics", TransportKind.HTTP, "bad endpoint")
        Traceback (most recent call last):
            ...
        AssemblyError: Failed to assemble metrics pipeline over http: bad endpoint
    """

    def __init__(self, signal: str, transport: TransportKind, reason: str) -> None:
        """Initialize AssemblyError.

        Args:
            signal: Signal whose pipeline failed.
            transport: Transport that was being assembled.
            reason: Human-readable cause.
        """
        self.signal = signal
        self.transport = transport
        self.reason = reason
        super().__init__(
            f"Failed to assemble {signal} pipeline over {transport.value}: {reason}"
        )


class RegistrationError(TelemetryError):
    """Raised when global providers are published more than once per process."""

    pass


__all__ = [
    "AssemblyError",
    "ConfigurationError",
    "RegistrationError",
    "TelemetryError",
]
