"""TelemetryGuard: ordered, bounded, failure-tolerant flush and shutdown.

The guard owns the assembled pipelines for the lifetime of a session. Its
release() is the only teardown path and runs exactly once:

1. Force-flush each log processor, the meter provider, then each span
   processor. Every call runs on a worker thread and is abandoned after
   ``flush_timeout_millis`` plus a short grace, so a hung exporter becomes a
   reported timeout. An export that failed during the flush (a FAILURE
   result or an exception, as recorded by otel_bootstrap.tracking) fails
   the flush too; the SDK itself reports such flushes as successful.
2. Report every failed flush (stderr by default) and log a summary WARNING
   while the event sinks are still attached. Failures never raise and never
   stop the remaining flushes.
3. Run ``on_release`` (the registry detach).
4. Shut down the logger, meter and tracer providers in that order, each
   under ``shutdown_timeout_millis``. Shutdown problems are WARNING records
   on this module's logger; with the sinks detached and no other handler
   configured, stdlib logging writes them to stderr.

Examples:
    >>> with init_telemetry(config) as guard:
    ...     run(guard.context)
    >>> guard.report.failures
    ()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

import click

from otel_bootstrap.config import ShutdownConfig
from otel_bootstrap.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from types import TracebackType

    from otel_bootstrap.pipeline import TelemetryPipelines
    from otel_bootstrap.registry import TelemetryContext

logger = logging.getLogger(__name__)

# Extra time granted to a worker thread beyond the SDK-level timeout
_RESULT_GRACE_SECONDS = 0.5


class GuardState(Enum):
    """TelemetryGuard lifecycle states.

    States:
        ARMED: Pipelines live, telemetry being recorded
        RELEASED: Flushed and shut down; terminal
    """

    ARMED = auto()
    RELEASED = auto()


@dataclass(frozen=True)
class FlushOutcome:
    """Result of flushing one processor or provider.

    Attributes:
        signal: "logs", "metrics" or "traces".
        index: Processor position, or None for the meter provider.
        error: Sanitized error description, or None on success.
    """

    signal: str
    index: int | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Check if the flush succeeded."""
        return self.error is None

    def describe(self) -> str:
        """Get the one-line failure description."""
        target = self.signal if self.index is None else f"{self.signal} {self.index}"
        return f"Failed to flush {target}: {self.error}"


@dataclass(frozen=True)
class FlushReport:
    """Ordered outcomes of one release."""

    outcomes: tuple[FlushOutcome, ...]

    @property
    def failures(self) -> tuple[FlushOutcome, ...]:
        """Get the failed outcomes in flush order."""
        return tuple(o for o in self.outcomes if not o.ok)

    @property
    def ok(self) -> bool:
        """Check if every flush succeeded."""
        return not self.failures


def report_to_stderr(outcome: FlushOutcome) -> None:
    """Default reporter: one line per failure on stderr."""
    click.echo(outcome.describe(), err=True)


def _bounded(call: Callable[[], Any], timeout_millis: int) -> str | None:
    """Run ``call`` with a hard deadline.

    Returns:
        None on success, otherwise a sanitized error description. A False
        return (the SDK's timeout signal) counts as a timeout.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="otel-bootstrap-release")
    try:
        future = executor.submit(call)
        value = future.result(timeout=timeout_millis / 1000 + _RESULT_GRACE_SECONDS)
    except FutureTimeoutError:
        return f"timed out after {timeout_millis} ms"
    except Exception as e:  # reported to the caller as an outcome
        return sanitize_error_message(str(e) or type(e).__name__)
    finally:
        # a hung call keeps its thread; release must not wait for it
        executor.shutdown(wait=False)

    if value is False:
        return f"timed out after {timeout_millis} ms"
    return None


class TelemetryGuard:
    """Scoped owner of the pipelines; flushes and shuts down on release.

    Attributes:
        pipelines: Owned pipelines.
        context: TelemetryContext built for the pipelines, if any.
        state: Current lifecycle state.
        report: FlushReport of the release, None while ARMED.
    """

    def __init__(
        self,
        pipelines: TelemetryPipelines,
        *,
        shutdown: ShutdownConfig | None = None,
        on_release: Callable[[], None] | None = None,
        reporter: Callable[[FlushOutcome], None] | None = None,
        context: TelemetryContext | None = None,
    ) -> None:
        """Initialize TelemetryGuard.

        Args:
            pipelines: Pipelines to own.
            shutdown: Flush and shutdown bounds.
            on_release: Called once between flush and shutdown. Defaults to
                ``context.detach`` when a context is given.
            reporter: Receives each failed FlushOutcome. Defaults to stderr.
            context: TelemetryContext exposed to the session.
        """
        self._pipelines = pipelines
        self._shutdown = shutdown if shutdown is not None else ShutdownConfig()
        if on_release is None and context is not None:
            on_release = context.detach
        self._on_release = on_release
        self._reporter = reporter if reporter is not None else report_to_stderr
        self._context = context
        self._lock = threading.Lock()
        self._state = GuardState.ARMED
        self._report: FlushReport | None = None

    @property
    def pipelines(self) -> TelemetryPipelines:
        return self._pipelines

    @property
    def context(self) -> TelemetryContext | None:
        return self._context

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def report(self) -> FlushReport | None:
        return self._report

    def release(self) -> FlushReport:
        """Flush every pipeline, then shut everything down.

        Idempotent: later calls return the first report without flushing
        again.

        Returns:
            FlushReport with one outcome per flushed item.
        """
        with self._lock:
            if self._report is not None:
                return self._report

            report = FlushReport(tuple(self._flush_all()))
            self._report = report
            self._state = GuardState.RELEASED

            for outcome in report.failures:
                try:
                    self._reporter(outcome)
                except Exception:
                    logger.warning("Flush failure reporter raised", exc_info=True)

            # logged while the dispatcher is still attached
            if report.failures:
                logger.warning(
                    "Telemetry flush incomplete",
                    extra={"failure_count": len(report.failures)},
                )

            try:
                if self._on_release is not None:
                    self._on_release()
            finally:
                self._shutdown_all()
            return report

    def _flush_all(self) -> list[FlushOutcome]:
        pipelines = self._pipelines
        outcomes: list[FlushOutcome] = []
        for i, processor in enumerate(pipelines.log_processors):
            outcomes.append(self._flush("logs", i, processor.force_flush))
        outcomes.append(self._flush("metrics", None, pipelines.meter_provider.force_flush))
        for i, processor in enumerate(pipelines.span_processors):
            outcomes.append(self._flush("traces", i, processor.force_flush))
        return outcomes

    def _flush(
        self, signal: str, index: int | None, force_flush: Callable[[int], Any]
    ) -> FlushOutcome:
        """Flush one item; a timeout, error or failed export fails the outcome."""
        timeout = self._shutdown.flush_timeout_millis
        status = self._pipelines.export_status.get((signal, index))
        if status is not None:
            status.reset()
        error = _bounded(lambda: force_flush(timeout), timeout)
        if status is not None:
            exported = status.take()
            if error is None:
                error = exported
        return FlushOutcome(signal, index, error)

    def _shutdown_all(self) -> None:
        timeout = self._shutdown.shutdown_timeout_millis
        providers = (
            ("logs", self._pipelines.logger_provider.shutdown),
            ("metrics", lambda: self._pipelines.meter_provider.shutdown(timeout_millis=timeout)),
            ("traces", self._pipelines.tracer_provider.shutdown),
        )
        for signal, shutdown in providers:
            error = _bounded(shutdown, timeout)
            if error is not None:
                logger.warning(
                    "Telemetry provider shutdown failed",
                    extra={"signal": signal, "error": error},
                )

    def __enter__(self) -> TelemetryGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


__all__ = [
    "FlushOutcome",
    "FlushReport",
    "GuardState",
    "TelemetryGuard",
    "report_to_stderr",
]
