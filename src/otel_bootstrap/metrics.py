"""MetricRecorder: cached metric instruments on an explicit meter.

The metrics bridge promotes structured log fields to instruments through this
recorder. Instruments are created on first use and reused afterwards.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.metrics import Counter, Histogram, Meter, UpDownCounter


class MetricRecorder:
    """Records counters, up-down counters and histograms on a meter.

    Attributes:
        meter: The OpenTelemetry Meter instance.

    Examples:
        >>> recorder = MetricRecorder(meter_provider.get_meter("otel_bootstrap"))
        >>> recorder.increment("apples.cut", labels={"vendor": "fruits"})
        >>> recorder.record("apple.slices", 4)
    """

    def __init__(self, meter: Meter) -> None:
        """Initialize MetricRecorder.

        Args:
            meter: Meter the instruments are created on.
        """
        self._meter = meter
        self._counters: dict[str, Counter] = {}
        self._up_down_counters: dict[str, UpDownCounter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    @property
    def meter(self) -> Meter:
        """Get the meter backing this recorder."""
        return self._meter

    def increment(
        self,
        name: str,
        value: int | float = 1,
        *,
        labels: dict[str, Any] | None = None,
    ) -> None:
        """Add a non-negative value to a monotonic counter.

        Args:
            name: The name of the counter metric.
            value: The value to add. Defaults to 1.
            labels: Optional dictionary of attribute key-value pairs.
        """
        with self._lock:
            if name not in self._counters:
                self._counters[name] = self._meter.create_counter(name)
            counter = self._counters[name]
        counter.add(value, attributes=labels or {})

    def add(
        self,
        name: str,
        value: int | float,
        *,
        labels: dict[str, Any] | None = None,
    ) -> None:
        """Add a possibly negative value to an up-down counter."""
        with self._lock:
            if name not in self._up_down_counters:
                self._up_down_counters[name] = self._meter.create_up_down_counter(name)
            counter = self._up_down_counters[name]
        counter.add(value, attributes=labels or {})

    def record(
        self,
        name: str,
        value: int | float,
        *,
        labels: dict[str, Any] | None = None,
    ) -> None:
        """Record a value in a histogram."""
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = self._meter.create_histogram(name)
            histogram = self._histograms[name]
        histogram.record(value, attributes=labels or {})


__all__ = ["MetricRecorder"]
