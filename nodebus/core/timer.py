"""
Drift-free periodic timers.

A timer's k-th slot is scheduled at ``start + k * period``; the next slot is
always derived from the last scheduled slot, never from the time the callback
actually ran, so lateness does not accumulate. When the owning loop falls
behind by whole periods the missed slots are skipped (phase is kept, no
catch-up burst) and counted in ``missed``.
"""
import math
import time
from typing import Callable, Optional

from nodebus.utils.failures import InvalidPeriod


def check_period(period) -> float:
    if isinstance(period, bool) or not isinstance(period, (int, float)):
        raise InvalidPeriod(f"Timer period must be a number, got {period!r}")
    if not math.isfinite(period) or period <= 0:
        raise InvalidPeriod(f"Timer period must be positive and finite, got {period!r}")
    return float(period)


class Timer:
    """Periodic callback owned by a node. Fires only while the node spins."""

    def __init__(self, period: float, callback: Callable[[], None],
                 clock: Optional[Callable[[], float]] = None, node=None):
        """
        Args:
            period: Seconds between slots, positive.
            callback: Zero-arg function run at every slot.
            clock: Monotonic time source (seconds); defaults to time.monotonic.
            node: Owning node, used by ``destroy``.
        """
        self.period = check_period(period)
        self.callback = callback
        self.clock = clock or time.monotonic
        self.node = node
        self.fire_count = 0
        self.missed = 0
        self.last_scheduled: Optional[float] = None
        self._canceled = False
        self._start = self.clock()
        self._slot = 1

    @property
    def start(self) -> float:
        return self._start

    @property
    def next_call_time(self) -> float:
        return self._start + self._slot * self.period

    def is_canceled(self) -> bool:
        return self._canceled

    def is_ready(self, now: Optional[float] = None) -> bool:
        if self._canceled:
            return False
        now = self.clock() if now is None else now
        return now >= self.next_call_time

    def time_until_next_call(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds until the next slot (negative when overdue), None when canceled."""
        if self._canceled:
            return None
        now = self.clock() if now is None else now
        return self.next_call_time - now

    def advance(self, now: Optional[float] = None) -> float:
        """
        Consume the due slot and schedule the next one.

        Returns:
            The scheduled time of the consumed slot.
        """
        now = self.clock() if now is None else now
        self.last_scheduled = self.next_call_time
        self._slot += 1
        self.fire_count += 1

        overdue = now - self.next_call_time
        if overdue > 0:
            skipped = math.ceil(overdue / self.period)
            self._slot += skipped
            self.missed += skipped
        return self.last_scheduled

    def cancel(self) -> None:
        self._canceled = True

    def reset(self) -> None:
        """Restart the schedule from now and re-enable a canceled timer."""
        self._start = self.clock()
        self._slot = 1
        self._canceled = False
        if self.node is not None:
            self.node.wake()

    def destroy(self) -> None:
        if self.node is not None:
            self.node.destroy_timer(self)
        else:
            self.cancel()

    def __repr__(self):
        return f"Timer(period={self.period}, fired={self.fire_count})"
