"""
Grace Period State Machine
Sensor warm-up tracking derived from the server-reported activation time

A freshly activated sensor needs GRACE_DURATION seconds before its readings
are usable. The state is a pure function of the activation instant and the
current time:

    READY --(sensor-info fetch, activation within the last hour)--> WARMING_UP
    WARMING_UP --(countdown reaches zero, checked by the ticker)--> READY

The sensor-info fetch may only enter WARMING_UP; only the ticker leaves it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


GRACE_DURATION = 3600  # seconds

# 14 days + 1 hour
SENSOR_LIFESPAN = 337 * 3600


class GraceState(str, Enum):
    """Sensor warm-up state"""
    WARMING_UP = "warming_up"
    READY = "ready"


@dataclass(frozen=True)
class GraceTick:
    """
    Result of evaluating the grace period on one ticker tick

    Attributes:
        state: State after the tick
        countdown: "{m}m {s}s" while warming up, None otherwise
        expired: True only on the tick that performed WARMING_UP -> READY
    """
    state: GraceState
    countdown: Optional[str] = None
    expired: bool = False


def grace_end(activation_unix: int) -> float:
    """Instant (epoch seconds) at which the sensor becomes usable"""
    return float(activation_unix) + GRACE_DURATION


def is_within_grace(activation_unix: Optional[int], now: float) -> bool:
    """True iff now < activation + GRACE_DURATION"""
    if activation_unix is None:
        return False
    return now < grace_end(activation_unix)


def state_after_sensor_info(current: GraceState, activation_unix: Optional[int],
                            now: float) -> GraceState:
    """
    Apply a successful sensor-info fetch to the grace state

    Only READY -> WARMING_UP can happen here. A fetch arriving while already
    WARMING_UP, or whose activation is older than the grace window, leaves
    the state untouched.

    Args:
        current: State before the fetch was applied
        activation_unix: Activation instant reported by the server
        now: Current time (epoch seconds)

    Returns:
        New grace state
    """
    if current == GraceState.READY and is_within_grace(activation_unix, now):
        return GraceState.WARMING_UP
    return current


def format_grace_countdown(remaining: float) -> str:
    minutes = int(remaining / 60)
    seconds = int(remaining % 60)
    return f"{minutes}m {seconds}s"


def evaluate_tick(current: GraceState, activation_unix: Optional[int],
                  now: float) -> GraceTick:
    """
    Re-evaluate the grace period from stored instants

    Args:
        current: State before the tick
        activation_unix: Stored activation instant
        now: Current time (epoch seconds)

    Returns:
        GraceTick with the new state, the countdown string and whether
        this tick ended the warm-up
    """
    if current != GraceState.WARMING_UP:
        return GraceTick(state=current)

    if activation_unix is None:
        # A later sensor-info body lost its activation time: stay warming up
        # without a countdown until one arrives again
        return GraceTick(state=GraceState.WARMING_UP)

    remaining = grace_end(activation_unix) - now
    if remaining <= 0:
        return GraceTick(state=GraceState.READY, expired=True)

    return GraceTick(state=GraceState.WARMING_UP,
                     countdown=format_grace_countdown(remaining))


def format_sensor_expiry(activation_unix: Optional[int], now: float) -> str:
    """
    Human readable remaining sensor lifetime

    Args:
        activation_unix: Activation instant, None when unknown
        now: Current time (epoch seconds)

    Returns:
        Status line for the sensor lifetime
    """
    if activation_unix is None:
        return "Sensor info not found (maybe not activated)"

    remaining = float(activation_unix) + SENSOR_LIFESPAN - now
    if remaining <= 0:
        return "Sensor expired, please activate a new one."

    days = int(remaining / 86400)
    hours = int((remaining % 86400) / 3600)
    return f"Sensor Expiry: {days} days, {hours} hours"
