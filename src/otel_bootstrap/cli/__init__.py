"""Command-line interface for otel-bootstrap."""

from __future__ import annotations

from otel_bootstrap.cli.main import cli, main

__all__ = ["cli", "main"]
