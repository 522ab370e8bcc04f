"""Performance monitoring utilities for plantpulse computation passes."""
import functools
import logging
import time
from typing import Callable

logger = logging.getLogger("plantpulse.perf")


def timed(func: Callable) -> Callable:
    """
    Decorator that measures and logs execution time for synchronous functions.

    Usage::

        @timed
        def compute_dashboard(inputs):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "function timed",
                extra={
                    "timed_function": func.__qualname__,
                    "duration_ms": duration_ms,
                },
            )
    return wrapper
