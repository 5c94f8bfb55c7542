"""Bounded retry helpers (fixed attempt bound, explicit backoff)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """Result of a bounded retry run."""
    value: T
    attempts: int
    succeeded: bool


def linear_backoff(base_delay: float, attempt: int) -> float:
    """Delay that grows with the attempt number (1-based)."""
    return base_delay * attempt


def attempt_until(
    operation: Callable[[int], T],
    accept: Callable[[T], bool],
    max_attempts: int,
    label: str = "operation",
) -> RetryOutcome[T]:
    """Run ``operation(attempt)`` until ``accept`` says yes or attempts run out.

    The last value is returned either way; exceptions raised by the
    operation propagate immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    value = None
    for attempt in range(1, max_attempts + 1):
        value = operation(attempt)
        if accept(value):
            return RetryOutcome(value=value, attempts=attempt, succeeded=True)
        if attempt < max_attempts:
            logger.warning("%s not satisfied (attempt %d/%d), retrying", label, attempt, max_attempts)

    logger.error("%s gave up after %d attempts", label, max_attempts)
    return RetryOutcome(value=value, attempts=max_attempts, succeeded=False)
