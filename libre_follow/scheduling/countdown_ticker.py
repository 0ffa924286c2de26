"""
Countdown Ticker
Once-per-second recompute of the countdown strings and the grace-period exit
"""

import logging
import threading
from typing import Callable, Optional

from ..data.grace_period import evaluate_tick, format_sensor_expiry
from ..data.models import DisplayState
from ..data.parsers import DEFAULT_TIME_FORMAT, format_fetch_countdown, reading_time_display
from ..data.view_state import ViewStateStore
from .clock import Clock, TimerHandle


TICK_INTERVAL = 1.0


class CountdownTicker:
    """
    Recomputes derived display strings from stored instants

    The ticker never counts elapsed ticks: every tick reads the scheduler's
    next fetch instant and the sensor activation instant and derives the
    strings from the clock, so it cannot drift away from the fetch schedule.
    It is the only component that moves the grace state back to READY, and
    the only place an off-schedule fetch is triggered.

    Attributes:
        clock (Clock): Time source and timer factory
        store (ViewStateStore): Destination of the recomputed strings
        next_fetch_provider (Callable): Returns the scheduler's next fetch instant
        on_grace_expired (Callable): Called once per WARMING_UP -> READY transition
        time_format (str): strftime pattern for the reading time
        timezone (str): IANA zone for the reading time, local when None
        logger (logging.Logger): Logger instance
    """

    def __init__(self, clock: Clock, store: ViewStateStore,
                 next_fetch_provider: Callable[[], Optional[float]],
                 on_grace_expired: Callable[[], None],
                 interval: float = TICK_INTERVAL,
                 time_format: str = DEFAULT_TIME_FORMAT,
                 timezone: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.clock = clock
        self.store = store
        self.next_fetch_provider = next_fetch_provider
        self.on_grace_expired = on_grace_expired
        self.interval = interval
        self.time_format = time_format
        self.timezone = timezone

        self._lock = threading.RLock()
        self._running = False
        self._session_id: Optional[int] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def start(self, session_id: int):
        """
        Tick immediately, then once per interval

        Args:
            session_id: View-state session the ticker writes into
        """
        with self._lock:
            if self._running:
                self.logger.warning("Countdown ticker already running")
                return
            self._running = True
            self._session_id = session_id
            self._generation += 1
            generation = self._generation
        self._on_timer(generation)

    def stop(self):
        with self._lock:
            self._running = False
            if self._timer:
                self._timer.cancel()
            self._timer = None

    def tick(self) -> bool:
        """
        Recompute the countdowns once

        Returns:
            bool: True if this tick ended the grace period
        """
        with self._lock:
            if not self._running:
                return False
            session_id = self._session_id

        now = self.clock.now()
        next_fetch = self.next_fetch_provider()
        expired = []

        def update(state: DisplayState) -> DisplayState:
            grace = evaluate_tick(state.grace_state, state.sensor.activation_unix, now)
            changes = {}
            if grace.expired:
                expired.append(True)
                if state.measurement is not None:
                    # "Not Ready" must not outlive the warm-up
                    changes["reading_time_display"] = reading_time_display(
                        state.measurement, False, self.time_format, self.timezone
                    )
            return state.patch(
                next_update_countdown=format_fetch_countdown(next_fetch, now),
                grace_state=grace.state,
                sensor_ready_countdown=grace.countdown,
                sensor_expiry_text=format_sensor_expiry(state.sensor.activation_unix, now),
                **changes,
            )

        self.store.apply(session_id, update)

        if expired:
            self.logger.info("Sensor grace period over, fetching fresh data")
            self.on_grace_expired()
            return True
        return False

    def _on_timer(self, generation: int):
        # A callback from before a stop/start pair must not re-arm
        with self._lock:
            if generation != self._generation:
                return
        try:
            self.tick()
        except Exception as e:
            self.logger.error(f"Countdown tick failed: {e}", exc_info=True)
        finally:
            with self._lock:
                if self._running and generation == self._generation:
                    self._timer = self.clock.call_later(
                        self.interval, lambda: self._on_timer(generation)
                    )
