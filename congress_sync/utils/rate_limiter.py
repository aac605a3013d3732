"""
Rate limiter using token bucket algorithm.

Paces individual requests to the Congress.gov API so a single sync never
bursts past the configured requests-per-second.

Responsibility: Token bucket pacing for adapter requests
"""

import asyncio
import time
from typing import Awaitable, Callable


class RateLimiter:
    """
    Token bucket rate limiter for controlling request rates.

    Tokens are added at a constant rate and each request consumes one.
    `waits` counts how many acquisitions had to sleep.

    Example:
        limiter = RateLimiter(rate=2.0, burst=1)
        await limiter.acquire()  # Blocks until token available
    """

    def __init__(
        self,
        rate: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            rate: Requests per second (e.g., 2.0 = 2 req/sec)
            burst: Maximum burst size (tokens in bucket at full capacity)
            clock: Monotonic clock (injectable for tests)
            sleep: Async sleep (injectable for tests)
        """
        if rate <= 0:
            raise ValueError("Rate must be positive")
        if burst < 1:
            raise ValueError("Burst must be at least 1")

        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self.tokens = float(burst)  # Start with full bucket
        self.last_update = clock()
        self.waits = 0
        self.lock = asyncio.Lock()

    async def acquire(self) -> None:
        """
        Acquire a token, blocking until one is available.
        """
        async with self.lock:
            now = self._clock()
            elapsed = now - self.last_update

            # Refill, capped at burst capacity
            self.tokens = min(self.burst, self.tokens + elapsed * self.rate)
            self.last_update = now

            if self.tokens < 1:
                wait_time = (1 - self.tokens) / self.rate
                self.waits += 1
                await self._sleep(wait_time)

                # The token earned while waiting is consumed immediately
                self.tokens = 0
                self.last_update = self._clock()
            else:
                self.tokens -= 1

    def get_current_tokens(self) -> float:
        """
        Get current number of tokens in bucket (approximate, lock-free).
        """
        elapsed = self._clock() - self.last_update
        return min(self.burst, self.tokens + elapsed * self.rate)

    def reset(self) -> None:
        """Reset the rate limiter to full capacity."""
        self.tokens = float(self.burst)
        self.last_update = self._clock()
        self.waits = 0
