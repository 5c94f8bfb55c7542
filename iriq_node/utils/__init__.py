"""Utilities package"""

from .logger import setup_logging
from .retry import RetryOutcome, attempt_until, linear_backoff
from .timers import IntervalTimer

__all__ = ['setup_logging', 'RetryOutcome', 'attempt_until', 'linear_backoff', 'IntervalTimer']
