"""Retry backoff for deadline work items.

Each consecutive failure grows the retry delay geometrically, rounded to
whole seconds and capped; any success resets it to the base.

Example:
    >>> from cadence.scheduling.backoff import RetryBackoff
    >>>
    >>> backoff = RetryBackoff()
    >>> backoff.ladder(7)
    [5, 8, 13, 22, 36, 60, 100]
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from cadence.settings import CadenceSettings

RETRY_DELAY_BASE_SEC = 5
RETRY_DELAY_MAX_SEC = 900
RETRY_MULTIPLIER = 1.659


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class RetryBackoff:
    """Geometric backoff with integer rounding at every step.

    The delay after ``k`` failures is produced by iterating ``next_delay``
    ``k`` times from ``base_delay``, so rounding compounds step by step.

    Attributes:
        base_delay: Delay before the first retry, in seconds
        max_delay: Cap for the delay, in seconds
        multiplier: Growth factor per consecutive failure
    """

    base_delay: int = RETRY_DELAY_BASE_SEC
    max_delay: int = RETRY_DELAY_MAX_SEC
    multiplier: float = RETRY_MULTIPLIER

    @classmethod
    def from_settings(cls, settings: CadenceSettings) -> RetryBackoff:
        return cls(
            base_delay=settings.retry_base_seconds,
            max_delay=settings.retry_max_seconds,
            multiplier=settings.retry_multiplier,
        )

    def next_delay(self, current: int) -> int:
        """Delay to use after the one currently in effect."""
        return min(round_half_up(current * self.multiplier), self.max_delay)

    def delay_after(self, failures: int) -> int:
        """Delay in effect after ``failures`` consecutive failures."""
        delay = self.base_delay
        for _ in range(failures):
            delay = self.next_delay(delay)
            if delay == self.max_delay:
                break
        return delay

    def ladder(self, steps: int) -> list[int]:
        """The first ``steps`` delays, starting with the base."""
        delays = []
        delay = self.base_delay
        for _ in range(steps):
            delays.append(delay)
            delay = self.next_delay(delay)
        return delays


DEFAULT_BACKOFF = RetryBackoff()
