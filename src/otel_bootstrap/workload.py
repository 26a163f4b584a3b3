"""Sample instrumented workload: an apple vendor.

Exercises every sink: spans through the TelemetryContext, INFO and ERROR
events on the ``vendor`` and ``my-target`` loggers, and metric-tagged fields
picked up by the metrics bridge.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from otel_bootstrap.registry import TelemetryContext

APPLE_PRICE = 2.99


class InvalidSliceCountError(ValueError):
    """Raised when an apple cannot be cut into the requested slices."""

    def __init__(self, slices: int) -> None:
        self.slices = slices
        super().__init__(f"I cannot cut the apple in {slices} slices")


class AppleVendor:
    """Cuts apples under spans.

    Examples:
        >>> vendor = AppleVendor(guard.context)
        >>> asyncio.run(vendor.my_instrumented_fun())
    """

    def __init__(self, context: TelemetryContext) -> None:
        self._context = context
        self._vendor_log = structlog.get_logger("vendor")
        self._log = structlog.get_logger("my-target")

    async def cut_my_apple(self, slices: int) -> None:
        """Cut an apple.

        Raises:
            InvalidSliceCountError: If ``slices`` is not positive.
        """
        with self._context.start_span("cut_my_apple", {"slices": slices}):
            if slices <= 0:
                self._vendor_log.error(f"I cannot cut the apple in {slices} slices", slices=slices)
                raise InvalidSliceCountError(slices)
            self._vendor_log.info(
                f"I cut the apple in {slices} slices",
                slices=slices,
                **{"monotonic_counter.apples_cut": 1, "histogram.apple_slices": slices},
            )

    async def my_instrumented_fun(self) -> None:
        """Greet, try an invalid cut, then fall back to four slices.

        A failure of the fallback cut propagates.
        """
        with self._context.start_span("my_instrumented_fun") as span:
            self._log.info(f"hello from apple vendor. My price is {APPLE_PRICE}")
            try:
                await self.cut_my_apple(0)
            except InvalidSliceCountError as e:
                span.add_event("fallback", {"reason": str(e), "slices": 4})
                await self.cut_my_apple(4)


__all__ = ["AppleVendor", "InvalidSliceCountError"]
