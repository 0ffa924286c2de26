"""
Scheduling package for LibreFollow
Contains the clock abstraction, the minute-aligned fetch scheduler and the countdown ticker
"""

from .clock import Clock, SystemClock, VirtualClock
from .countdown_ticker import CountdownTicker
from .minute_scheduler import MinuteScheduler, next_minute_boundary

__all__ = [
    'Clock',
    'SystemClock',
    'VirtualClock',
    'CountdownTicker',
    'MinuteScheduler',
    'next_minute_boundary'
]
