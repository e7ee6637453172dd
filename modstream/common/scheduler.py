"""
Tick Scheduler for Precise Interval Polling

Provides the Ticker class that drives a streaming session's polling loop.
Ticks are scheduled relative to the ticker's start, so time spent reading
and sending does not accumulate as drift.

Unlike a plain `while True: await asyncio.sleep(interval)` loop, the ticker:
- Fires on a fixed schedule (start + n * interval)
- Skips missed intervals instead of queueing them
- Wakes immediately when the session's stop event is set
- Reports tick and skip counts for observability

Usage:
    ticker = Ticker(1.0)
    while (tick := await ticker.wait_next(stop_event)) is not None:
        ...  # one read-and-send cycle per tick
    ticker.stop()
"""

import asyncio
import time
from datetime import datetime

from modstream.common.logging_setup import get_service_logger
from modstream.common.timestamp import utc_now

logger = get_service_logger("scheduler")


class Ticker:
    """
    Fixed-interval tick source for one session.

    The first tick fires one full interval after the first call to
    wait_next(). A stopped ticker never fires again.

    Attributes:
        interval: Seconds between ticks
        name: Name for logging/identification
    """

    def __init__(self, interval_seconds: float, name: str = "unnamed"):
        if interval_seconds <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval_seconds}")

        self.interval = interval_seconds
        self.name = name

        self._next_run: float | None = None
        self._stopped = False

        self._tick_count: int = 0
        self._skipped_count: int = 0
        self._last_drift_ms: float = 0

    async def wait_next(self, stop_event: asyncio.Event) -> datetime | None:
        """
        Wait for the next tick.

        Args:
            stop_event: Event that cancels the wait when set

        Returns:
            Wall-clock UTC time of the tick, or None if the ticker was
            stopped or stop_event was set before the tick fired.
        """
        if self._stopped or stop_event.is_set():
            return None

        now = time.monotonic()
        if self._next_run is None:
            self._next_run = now + self.interval

        sleep_duration = self._next_run - now
        if sleep_duration > 0:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_duration)
                return None
            except asyncio.TimeoutError:
                pass

        if self._stopped or stop_event.is_set():
            return None

        actual_time = time.monotonic()
        self._last_drift_ms = (actual_time - self._next_run) * 1000

        # Skip missed intervals to catch up (don't queue up missed ticks)
        skipped = 0
        self._next_run += self.interval
        while self._next_run <= actual_time:
            self._next_run += self.interval
            skipped += 1

        if skipped:
            self._skipped_count += skipped
            logger.warning(
                f"Ticker '{self.name}' skipped {skipped} intervals "
                f"(running {self._last_drift_ms:.0f}ms late)"
            )

        self._tick_count += 1
        return utc_now()

    def stop(self) -> None:
        """Stop the ticker. Safe to call more than once."""
        self._stopped = True

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def tick_count(self) -> int:
        """Number of ticks fired so far."""
        return self._tick_count

    @property
    def skipped_count(self) -> int:
        """Number of intervals skipped to catch up."""
        return self._skipped_count

    def get_stats(self) -> dict:
        """Get ticker statistics for observability."""
        return {
            "name": self.name,
            "interval_s": self.interval,
            "tick_count": self._tick_count,
            "skipped_count": self._skipped_count,
            "drift_last_ms": round(self._last_drift_ms, 1),
            "stopped": self._stopped,
        }
