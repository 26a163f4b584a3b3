"""End-to-end telemetry sessions with in-memory exporters.

Each test runs a full session (assemble, install, workload, release) and
checks what reached the exporters, stdout and stderr.
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk._logs.export import LogExportResult
from opentelemetry.sdk.trace.export import SpanExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import ProxyTracerProvider

from otel_bootstrap.bootstrap import init_telemetry
from otel_bootstrap.cli.main import main
from otel_bootstrap.cli.utils import ExitCode
from otel_bootstrap.config import ShutdownConfig, TelemetryConfig, TransportKind
from otel_bootstrap.guard import GuardState

pytestmark = pytest.mark.integration


class UnreachableLogExporter:
    """Log exporter whose export blocks like a connect to a dead endpoint."""

    def __init__(self) -> None:
        self.unblock = threading.Event()

    def export(self, batch: Any) -> LogExportResult:
        self.unblock.wait(timeout=10)
        return LogExportResult.FAILURE

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return True

    def shutdown(self) -> None:
        self.unblock.set()


class RejectingSpanExporter(InMemorySpanExporter):
    """Span exporter whose collector rejects every batch."""

    def export(self, spans: Any) -> SpanExportResult:
        return SpanExportResult.FAILURE


@pytest.fixture
def env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an env file; the variables it sets are restored after the test.

    Returns:
        Path to the env file.
    """
    monkeypatch.setenv("OTEL_SERVICE_NAME", "unset")
    monkeypatch.delenv("OTEL_SERVICE_NAME")
    path = tmp_path / ".env"
    path.write_text("OTEL_SERVICE_NAME=apple-vendor\n")
    return path


class TestHealthySession:
    """A reachable collector: everything flushes, nothing on stderr."""

    def test_grpc_session_flushes_cleanly(
        self, fake_factory: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test one log event and a span with two children flush successfully."""
        config = TelemetryConfig(transport=TransportKind.GRPC)
        with init_telemetry(config, factory=fake_factory) as guard:
            context = guard.context
            assert context is not None
            with context.start_span("checkout"):
                structlog.get_logger("my-target").info("hello from apple vendor")
                with context.start_span("pick_apple"):
                    pass
                with context.start_span("pack_apple"):
                    pass

        report = guard.report
        assert report is not None
        assert len(report.outcomes) == 3
        assert report.ok
        assert guard.state is GuardState.RELEASED

        spans = fake_factory.spans.get_finished_spans()
        assert sorted(s.name for s in spans) == ["checkout", "pack_apple", "pick_apple"]
        assert fake_factory.logs.bodies() == ["hello from apple vendor"]

        captured = capsys.readouterr()
        assert captured.err == ""
        assert "hello from apple vendor" in captured.out

    def test_cli_run_exits_zero(
        self,
        env_file: Path,
        fake_factory: Any,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test the command runs the vendor workload and exits cleanly."""
        with patch("otel_bootstrap.pipeline.exporter_factory_for", return_value=fake_factory):
            main(["--otel", str(env_file), "--proto", "grpc"])

        captured = capsys.readouterr()
        assert captured.err == ""
        assert "I cut the apple in 4 slices" in captured.out
        assert len(fake_factory.spans.get_finished_spans()) == 3
        span_resource = fake_factory.spans.get_finished_spans()[0].resource
        assert span_resource.attributes["service.name"] == "apple-vendor"
        assert "apples_cut" in fake_factory.metrics.metric_names()


class TestInvalidTransport:
    """An unsupported protocol: fatal before any exporter exists."""

    def test_bogus_protocol(
        self, env_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test exit 3, no exporter factory and no registered providers."""
        with (
            patch("otel_bootstrap.pipeline.exporter_factory_for") as factory_for,
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["--otel", str(env_file), "--proto", "bogus"])

        assert exc_info.value.code == ExitCode.CONFIGURATION_ERROR
        factory_for.assert_not_called()
        assert isinstance(trace.get_tracer_provider(), ProxyTracerProvider)
        assert "not supported" in capsys.readouterr().err


class TestUnreachableCollector:
    """A dead log endpoint: one reported failure, clean exit."""

    @pytest.fixture
    def dead_logs_factory(self, fake_factory: Any) -> Generator[Any, None, None]:
        """Swap the log exporter for one that never completes.

        Yields:
            The fake factory with the blocking log exporter.
        """
        exporter = UnreachableLogExporter()
        fake_factory.log_exporter = lambda config: exporter
        yield fake_factory
        exporter.unblock.set()

    def test_only_logs_fail(
        self, dead_logs_factory: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test exactly one flush failure is reported, for the log signal."""
        config = TelemetryConfig(
            transport=TransportKind.HTTP,
            shutdown=ShutdownConfig(flush_timeout_millis=200, shutdown_timeout_millis=200),
        )
        with init_telemetry(config, factory=dead_logs_factory) as guard:
            structlog.get_logger("vendor").info("I cut the apple in 4 slices")

        report = guard.report
        assert report is not None
        (failure,) = report.failures
        assert failure.signal == "logs"
        assert failure.index == 0
        err_lines = capsys.readouterr().err.splitlines()
        assert err_lines == ["Failed to flush logs 0: timed out after 200 ms"]

    def test_rejected_log_batch_reported(
        self, fake_factory: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test a collector refusing the log batch yields one log failure."""
        fake_factory.logs.result = LogExportResult.FAILURE
        config = TelemetryConfig(transport=TransportKind.GRPC)
        with init_telemetry(config, factory=fake_factory) as guard:
            structlog.get_logger("vendor").info("I cut the apple in 4 slices")

        assert guard.report is not None
        assert [(o.signal, o.index) for o in guard.report.failures] == [("logs", 0)]
        failure_lines = [
            line for line in capsys.readouterr().err.splitlines() if line.startswith("Failed")
        ]
        assert failure_lines == ["Failed to flush logs 0: export returned FAILURE"]

    def test_every_signal_failing_fast(
        self, fake_factory: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test rejected and raising exports are reported for each signal."""
        fake_factory.spans = RejectingSpanExporter()
        fake_factory.metrics.export_error = ConnectionError("collector unreachable")
        fake_factory.logs.result = LogExportResult.FAILURE
        config = TelemetryConfig(transport=TransportKind.HTTP)
        with init_telemetry(config, factory=fake_factory) as guard:
            context = guard.context
            assert context is not None
            with context.start_span("cut_my_apple"):
                structlog.get_logger("vendor").info(
                    "I cut the apple in 4 slices", **{"monotonic_counter.apples_cut": 1}
                )

        assert guard.report is not None
        assert [(o.signal, o.index, o.error) for o in guard.report.failures] == [
            ("logs", 0, "export returned FAILURE"),
            ("metrics", None, "collector unreachable"),
            ("traces", 0, "export returned FAILURE"),
        ]
        assert "Failed to flush metrics: collector unreachable" in capsys.readouterr().err
