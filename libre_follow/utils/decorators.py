"""
Utility Decorators
Decorator functions for LibreFollow
"""

import functools
import logging
import time
from typing import Callable


def timing(func: Callable = None, *, log_level: str = "DEBUG"):
    """
    Timing decorator to measure function execution time

    Args:
        func: Function to decorate
        log_level: Log level for timing information

    Returns:
        Decorated function
    """
    numeric_level = getattr(logging, log_level.upper(), logging.DEBUG)

    def decorator(f: Callable) -> Callable:
        logger = logging.getLogger(f.__module__)

        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return f(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.log(numeric_level, f"{f.__qualname__} took {elapsed_ms:.1f}ms")
        return wrapper

    if func is None:
        return decorator
    else:
        return decorator(func)


def exception_handler(default_return=None, log_exception: bool = True):
    """
    Exception handling decorator

    Catches any Exception raised by the wrapped function and returns
    `default_return` instead. Used where an error must not propagate into
    the caller's thread (worker pool tasks, timer callbacks).

    Args:
        default_return: Default value to return on exception
        log_exception: Whether to log exceptions

    Returns:
        Decorated function
    """
    def decorator(func: Callable) -> Callable:
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log_exception:
                    logger.error(f"Unhandled error in {func.__qualname__}: {e}", exc_info=True)
                return default_return
        return wrapper
    return decorator
