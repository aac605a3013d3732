"""
Rate limit monitor for the Congress.gov API.

Tracks outbound request timestamps over the trailing hour together with the
last quota snapshot the upstream reported, and advises callers whether to
throttle. Congress.gov allows 5,000 requests per hour per key.

Complements the token bucket in rate_limiter.py: the bucket paces individual
requests, the monitor watches the hourly budget.

Responsibility: Hourly quota tracking and throttle recommendations
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Mapping, Optional

logger = logging.getLogger(__name__)

ONE_HOUR = 3600.0
ONE_MINUTE = 60.0

CRITICAL_WAIT_SECONDS = 5.0
WARNING_WAIT_SECONDS = 2.0
DEFAULT_RESET_SECONDS = 60.0


@dataclass(frozen=True)
class QuotaSnapshot:
    """Last quota reported by the upstream (reset is a unix timestamp)"""
    limit: int
    remaining: int
    reset: float
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class RateLimitStats:
    total_requests: int
    requests_last_hour: int
    requests_last_minute: int
    average_requests_per_second: float
    estimated_hourly_rate: int
    warning_level: str  # "safe" | "warning" | "critical"


@dataclass(frozen=True)
class ThrottleDecision:
    throttle: bool
    wait_seconds: float = 0.0
    reason: Optional[str] = None


def _header_int(headers: Mapping[str, str], *names: str) -> Optional[int]:
    for name in names:
        value = headers.get(name)
        if value is None:
            continue
        try:
            return int(float(value))
        except (TypeError, ValueError):
            continue
    return None


class RateLimitMonitor:
    """
    Sliding-window request tracker.

    One instance per process, shared by every adapter. State is only mutated
    in non-suspending statements, so no lock is needed under asyncio.

    Example:
        monitor = RateLimitMonitor(hourly_limit=5000)
        await monitor.wait_if_needed()
        response = await client.get(url)
        monitor.record_request(response.headers)
    """

    def __init__(
        self,
        hourly_limit: int = 5000,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            hourly_limit: Known upstream ceiling, used when no quota headers are seen
            clock: Wall clock in seconds (injectable for tests)
            sleep: Async sleep used by wait_if_needed()
        """
        self.hourly_limit = hourly_limit
        self._clock = clock
        self._sleep = sleep
        self._timestamps: List[float] = []
        self._last_quota: Optional[QuotaSnapshot] = None
        self._rate_limit_hit = False
        self._hit_reset_at: Optional[float] = None

    def record_request(self, headers: Optional[Mapping[str, str]] = None) -> None:
        """
        Record an outbound request and parse any quota headers.

        Args:
            headers: Response headers (case-insensitive mapping, e.g. httpx.Headers)
        """
        now = self._clock()
        self._timestamps.append(now)

        if headers:
            quota = self._parse_quota_headers(headers, now)
            if quota is not None:
                self._last_quota = quota

        # Keep the trailing hour only
        cutoff = now - ONE_HOUR
        self._timestamps = [ts for ts in self._timestamps if ts > cutoff]

    def _parse_quota_headers(
        self,
        headers: Mapping[str, str],
        now: float
    ) -> Optional[QuotaSnapshot]:
        limit = _header_int(headers, "x-ratelimit-limit", "ratelimit-limit")
        remaining = _header_int(headers, "x-ratelimit-remaining", "ratelimit-remaining")
        reset = _header_int(headers, "x-ratelimit-reset", "ratelimit-reset")
        retry_after = _header_int(headers, "retry-after")

        if limit is None and remaining is None:
            return None

        return QuotaSnapshot(
            limit=limit or self.hourly_limit,
            remaining=remaining or 0,
            reset=float(reset) if reset else now + ONE_HOUR,
            retry_after=float(retry_after) if retry_after else None,
        )

    def get_stats(self) -> RateLimitStats:
        """Compute request counts and the current warning level."""
        now = self._clock()
        hour_ago = now - ONE_HOUR
        minute_ago = now - ONE_MINUTE

        last_hour = sum(1 for ts in self._timestamps if ts > hour_ago)
        last_minute = sum(1 for ts in self._timestamps if ts > minute_ago)

        per_second = last_minute / ONE_MINUTE
        hourly_rate = per_second * ONE_HOUR

        level = "safe"
        if self._last_quota is not None and self._last_quota.limit > 0:
            percent_remaining = self._last_quota.remaining / self._last_quota.limit * 100
            if percent_remaining < 10:
                level = "critical"
            elif percent_remaining < 25:
                level = "warning"
        else:
            if hourly_rate > self.hourly_limit * 0.9:
                level = "critical"
            elif hourly_rate > self.hourly_limit * 0.8:
                level = "warning"

        return RateLimitStats(
            total_requests=len(self._timestamps),
            requests_last_hour=last_hour,
            requests_last_minute=last_minute,
            average_requests_per_second=round(per_second, 2),
            estimated_hourly_rate=round(hourly_rate),
            warning_level=level,
        )

    def should_throttle(self) -> ThrottleDecision:
        """Decide whether the next request should wait, and for how long."""
        stats = self.get_stats()

        if stats.warning_level == "critical":
            return ThrottleDecision(True, CRITICAL_WAIT_SECONDS, "Approaching rate limit")

        if stats.warning_level == "warning":
            return ThrottleDecision(True, WARNING_WAIT_SECONDS, "High request rate detected")

        if self._rate_limit_hit:
            remaining = (self._hit_reset_at or 0.0) - self._clock()
            if remaining > 0:
                return ThrottleDecision(True, remaining, "Rate limit hit, waiting for reset")
            # Reset time passed
            self._rate_limit_hit = False
            self._hit_reset_at = None

        return ThrottleDecision(False)

    def mark_rate_limit_hit(self, retry_after: Optional[float] = None) -> None:
        """
        Record a hard rate-limit rejection (HTTP 429).

        The monitor keeps recommending a wait until the reset time passes:
        now + retry_after when given, else the last quota reset if it is
        still ahead, else one minute from now.
        """
        now = self._clock()
        self._rate_limit_hit = True

        if retry_after:
            self._hit_reset_at = now + retry_after
            if self._last_quota is not None:
                self._last_quota = replace(self._last_quota, retry_after=retry_after)
        elif self._last_quota is not None and self._last_quota.reset > now:
            self._hit_reset_at = self._last_quota.reset
        else:
            self._hit_reset_at = now + DEFAULT_RESET_SECONDS

        logger.warning(
            f"Rate limit hit; throttling for {self._hit_reset_at - now:.0f}s"
        )

    def get_last_quota(self) -> Optional[QuotaSnapshot]:
        """Last quota snapshot reported by the upstream, if any."""
        return self._last_quota

    def log_status(self) -> None:
        """Log a one-shot summary of the window."""
        stats = self.get_stats()
        logger.info(
            f"Rate limit status: {stats.requests_last_hour} req/hour, "
            f"{stats.requests_last_minute} req/minute, "
            f"{stats.average_requests_per_second} req/sec, "
            f"estimated {stats.estimated_hourly_rate}/hour, "
            f"level={stats.warning_level}"
        )

        if self._last_quota is not None:
            logger.info(
                f"API remaining: {self._last_quota.remaining}/{self._last_quota.limit}"
            )

        decision = self.should_throttle()
        if decision.throttle:
            logger.warning(
                f"Throttling: {decision.reason} (wait {decision.wait_seconds:.1f}s)"
            )

    async def wait_if_needed(self) -> float:
        """
        Sleep for the recommended throttle time, if any.

        Returns:
            Seconds waited (0.0 when not throttled)
        """
        decision = self.should_throttle()
        if not decision.throttle:
            return 0.0

        logger.info(f"Throttling {decision.wait_seconds:.1f}s: {decision.reason}")
        await self._sleep(decision.wait_seconds)
        return decision.wait_seconds

    def reset(self) -> None:
        """Clear all window state."""
        self._timestamps = []
        self._last_quota = None
        self._rate_limit_hit = False
        self._hit_reset_at = None
