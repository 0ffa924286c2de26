"""Tests for the virtual clock used to drive timers deterministically."""

import pytest

from libre_follow.scheduling.clock import SystemClock, VirtualClock


def test_advance_fires_due_timers_in_order_at_their_due_time():
    clock = VirtualClock(start=100.0)
    fired = []
    clock.call_later(5, lambda: fired.append(("b", clock.now())))
    clock.call_later(2, lambda: fired.append(("a", clock.now())))

    clock.advance(10)

    assert fired == [("a", 102.0), ("b", 105.0)]
    assert clock.now() == 110.0


def test_timers_armed_by_callbacks_fire_within_the_same_advance():
    clock = VirtualClock()
    fired = []

    def tick():
        fired.append(clock.now())
        clock.call_later(1, tick)

    clock.call_later(1, tick)
    clock.advance(3.5)

    assert fired == [1.0, 2.0, 3.0]
    assert clock.pending() == 1


def test_cancelled_timer_never_fires():
    clock = VirtualClock()
    fired = []
    handle = clock.call_later(1, lambda: fired.append(True))

    handle.cancel()
    clock.advance(5)

    assert fired == []
    assert handle.cancelled


@pytest.mark.parametrize("clock", [VirtualClock(), SystemClock()])
def test_non_positive_delay_rejected(clock):
    with pytest.raises(ValueError):
        clock.call_later(0, lambda: None)


def test_system_clock_timer_can_be_cancelled():
    handle = SystemClock().call_later(60, lambda: None)
    handle.cancel()
    assert handle.cancelled
