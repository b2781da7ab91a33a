"""Timing helpers for blocking I/O."""

import logging
import time
from contextlib import contextmanager
from typing import Optional


class Timer:
    """Elapsed time holder filled in by ``timed_operation``."""

    def __init__(self):
        self.start_time = time.time()
        self.end_time: Optional[float] = None
        self.duration_ms: float = 0


@contextmanager
def timed_operation(name: str, logger: Optional[logging.Logger] = None):
    """Context manager to time an operation.

    Usage:
        with timed_operation("token_exchange") as timer:
            result = exchange()
        print(f"Took {timer.duration_ms}ms")

    Args:
        name: Operation name for logging
        logger: Optional logger instance

    Yields:
        Timer object with duration_ms attribute
    """
    timer = Timer()

    try:
        yield timer
    finally:
        timer.end_time = time.time()
        timer.duration_ms = (timer.end_time - timer.start_time) * 1000

        if logger:
            logger.debug(
                f"Operation '{name}' completed",
                extra={"operation": name, "duration_ms": round(timer.duration_ms, 2)}
            )
