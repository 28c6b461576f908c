"""
Performance timing utilities for debugging.

Measures execution time of ranking and classification calls when the
COGNIZE_DEBUG environment variable is set at import time.
"""

import functools
import os
import time
from typing import Callable, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

DEBUG_ENABLED = os.getenv("COGNIZE_DEBUG") == "1"


def timer(func: Callable[P, R]) -> Callable[P, R]:
    """
    Decorator that prints execution time when COGNIZE_DEBUG=1.

    Args:
        func: Function to measure

    Returns:
        The function itself when debugging is off, otherwise a timing wrapper
    """
    if not DEBUG_ENABLED:
        return func

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        print(f"[COGNIZE_DEBUG] {func.__name__}: {elapsed_ms:.2f}ms")
        return result

    return wrapper
