"""
Minute Scheduler
Fires the fetch cycle at every wall-clock minute boundary
"""

import logging
import math
import threading
from datetime import datetime
from typing import Callable, Optional

from .clock import Clock, TimerHandle


# Smallest delay ever handed to a timer
MIN_ARM_DELAY = 0.25

# A timer firing at most this many seconds before its target is jitter,
# not a clock anomaly
EARLY_FIRE_TOLERANCE = 1.0


def next_minute_boundary(instant: float) -> float:
    """
    Smallest minute-boundary instant strictly greater than `instant`

    Args:
        instant: Epoch seconds

    Returns:
        Epoch seconds of the next hh:mm:00
    """
    return math.floor(instant / 60.0) * 60.0 + 60.0


class MinuteScheduler:
    """
    One-shot timer re-armed on every minute boundary

    The next target is always re-derived from the wall clock when arming,
    never by adding 60s to the previous target, so timer jitter cannot
    accumulate.

    Attributes:
        clock (Clock): Time source and timer factory
        on_fetch (Callable): Fetch cycle trigger, must not block
        logger (logging.Logger): Logger instance
    """

    def __init__(self, clock: Clock, on_fetch: Callable[[], None],
                 min_delay: float = MIN_ARM_DELAY):
        """
        Initialize minute scheduler

        Args:
            clock: Clock used for time and timers
            on_fetch: Called for the immediate fetch and on every boundary
            min_delay: Lower bound for any armed delay, must be positive
        """
        if min_delay <= 0:
            raise ValueError("min_delay must be positive")
        self.logger = logging.getLogger(__name__)
        self.clock = clock
        self.on_fetch = on_fetch
        self.min_delay = min_delay

        self._lock = threading.RLock()
        self._running = False
        self._timer: Optional[TimerHandle] = None
        self._next_fetch_instant: Optional[float] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def next_fetch_instant(self) -> Optional[float]:
        """Instant the armed timer targets, None when stopped"""
        with self._lock:
            return self._next_fetch_instant

    def start(self):
        """Fetch immediately, then arm for the next minute boundary"""
        with self._lock:
            if self._running:
                self.logger.warning("Minute scheduler already running")
                return
            self._running = True

        self._trigger_fetch()

        with self._lock:
            if self._running:
                self._arm()

    def stop(self):
        """Cancel the pending timer; no further fetches are triggered"""
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._timer:
                self._timer.cancel()
            self._timer = None
            self._next_fetch_instant = None
        self.logger.debug("Minute scheduler stopped")

    def _arm(self):
        target = next_minute_boundary(self.clock.now())
        delay = target - self.clock.now()
        if delay <= 0:
            self.logger.warning(f"Non-positive delay {delay:.3f}s to next minute, clamping")
        self._arm_at(target, delay)

    def _arm_at(self, target: float, delay: float):
        delay = max(delay, self.min_delay)
        self._next_fetch_instant = target
        handle_box = []

        def fire():
            self._on_timer(handle_box[0] if handle_box else None)

        self._timer = self.clock.call_later(delay, fire)
        handle_box.append(self._timer)
        self.logger.debug(
            f"Next fetch armed for {datetime.fromtimestamp(target).strftime('%H:%M:%S')} "
            f"(in {delay:.2f}s)"
        )

    def _on_timer(self, handle: Optional[TimerHandle]):
        with self._lock:
            if not self._running or (handle is not None and handle is not self._timer):
                return
            self._timer = None
            target = self._next_fetch_instant
            now = self.clock.now()
            if target is not None and 0 < target - now <= EARLY_FIRE_TOLERANCE:
                # Fired a little early: wait out the rest without fetching
                self._arm_at(target, target - now)
                return

        try:
            self._trigger_fetch()
        finally:
            with self._lock:
                if self._running:
                    self._arm()

    def _trigger_fetch(self):
        try:
            self.on_fetch()
        except Exception as e:
            self.logger.error(f"Fetch trigger failed: {e}", exc_info=True)
