"""
Retry configuration and exponential backoff.

Shared by the error handler's retry executor. Delays are in seconds.

Responsibility: Backoff math for retried operations
"""

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy for ErrorHandler.with_retry().

    Attributes:
        max_attempts: Total attempts including the first (1 = no retries)
        initial_delay: Delay before the second attempt, in seconds
        max_delay: Cap for the exponential component, in seconds
        backoff_multiplier: Growth factor between attempts
        jitter: Upper bound of the uniform random delay added to every wait
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1


def calculate_backoff(
    attempt: int,
    config: RetryConfig = RetryConfig(),
    suggested_delay: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Calculate the wait before retrying after a failed attempt.

    Formula:
        max(suggested_delay, min(max_delay, initial_delay * multiplier ** (attempt - 1)))
        + uniform(0, jitter)

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        config: Retry policy
        suggested_delay: Delay recommended by the error classification, if any
        rng: Random source for jitter (injectable for tests)

    Returns:
        Delay in seconds

    Example:
        >>> calculate_backoff(1)  # ~1.0s
        >>> calculate_backoff(2)  # ~2.0s
        >>> calculate_backoff(3)  # ~4.0s
    """
    if attempt < 1:
        raise ValueError("attempt is 1-indexed")

    # Exponential delay capped at max_delay
    delay = config.initial_delay * (config.backoff_multiplier ** (attempt - 1))
    delay = min(delay, config.max_delay)

    # A classification-suggested delay (e.g. 60s for a 429) is a floor
    if suggested_delay:
        delay = max(delay, suggested_delay)

    if config.jitter > 0:
        delay += (rng or random).uniform(0, config.jitter)

    return delay
