"""Utility modules.

Includes:
- Logging configuration
- Operation timing
"""

from .logging_config import setup_logging
from .timing import timed_operation

__all__ = [
    "setup_logging",
    "timed_operation",
]
