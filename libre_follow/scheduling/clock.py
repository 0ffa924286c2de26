"""
Clock Abstraction
Wall-clock time and one-shot timers, real or virtual

SystemClock is used in production: `now()` is wall-clock epoch seconds and
timers are daemon `threading.Timer` threads. VirtualClock keeps time in a
variable that only moves when `advance()` is called, firing due timers in
order, so scheduling logic can be tested without real waits.
"""

import heapq
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Tuple


TimerCallback = Callable[[], None]


class TimerHandle(ABC):
    """Handle of an armed one-shot timer"""

    @abstractmethod
    def cancel(self):
        """Cancel the timer; a no-op if it already fired"""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Clock(ABC):
    """Time source plus one-shot timer factory"""

    @abstractmethod
    def now(self) -> float:
        """Current wall-clock time in epoch seconds"""

    @abstractmethod
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """
        Run `callback` once after `delay` seconds

        Args:
            delay: Delay in seconds (must be > 0)
            callback: Function to call

        Returns:
            TimerHandle that can cancel the call
        """


# ==================== PRODUCTION ====================

class _ThreadingTimerHandle(TimerHandle):

    def __init__(self, timer: threading.Timer):
        self._timer = timer
        self._cancelled = False

    def cancel(self):
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class SystemClock(Clock):
    """Real clock backed by time.time() and threading.Timer"""

    def __init__(self, thread_name: str = "FollowTimer"):
        self.thread_name = thread_name

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        if delay <= 0:
            raise ValueError(f"Timer delay must be positive, got {delay}")
        timer = threading.Timer(delay, callback)
        timer.name = self.thread_name
        timer.daemon = True  # never keep the process alive
        timer.start()
        return _ThreadingTimerHandle(timer)


# ==================== TESTING ====================

class _VirtualTimerHandle(TimerHandle):

    def __init__(self, due: float, callback: TimerCallback):
        self.due = due
        self.callback = callback
        self._cancelled = False
        self.fired = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class VirtualClock(Clock):
    """
    Deterministic clock for tests

    Attributes:
        logger (logging.Logger): Logger instance
    """

    def __init__(self, start: float = 0.0):
        self.logger = logging.getLogger(__name__)
        self._now = float(start)
        self._lock = threading.RLock()
        self._sequence = itertools.count()
        self._queue: List[Tuple[float, int, _VirtualTimerHandle]] = []

    def now(self) -> float:
        with self._lock:
            return self._now

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        if delay <= 0:
            raise ValueError(f"Timer delay must be positive, got {delay}")
        with self._lock:
            handle = _VirtualTimerHandle(self._now + delay, callback)
            heapq.heappush(self._queue, (handle.due, next(self._sequence), handle))
            return handle

    def advance(self, seconds: float):
        """
        Move time forward, firing every timer that falls due on the way

        Timers armed by callbacks are fired too if they fall due before the
        target time. Each callback observes `now()` equal to its due time.
        """
        with self._lock:
            target = self._now + seconds
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    self._now = max(self._now, target)
                    return
                due, _, handle = heapq.heappop(self._queue)
                self._now = max(self._now, due)
            if not handle.cancelled:
                handle.fired = True
                handle.callback()

    def set_time(self, value: float):
        """Jump the wall clock without firing anything (clock anomalies)"""
        with self._lock:
            self._now = float(value)

    def pending(self) -> int:
        """Number of armed, not yet cancelled timers"""
        with self._lock:
            return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def next_due(self):
        with self._lock:
            live = [due for due, _, handle in self._queue if not handle.cancelled]
            return min(live) if live else None
