import httpx
import pytest

from congress_sync.utils.rate_limit_monitor import (
    CRITICAL_WAIT_SECONDS,
    DEFAULT_RESET_SECONDS,
    WARNING_WAIT_SECONDS,
    RateLimitMonitor,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _make_monitor(hourly_limit: int = 5000, clock: FakeClock = None, sleep=None) -> RateLimitMonitor:
    kwargs = {"hourly_limit": hourly_limit, "clock": clock or FakeClock()}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return RateLimitMonitor(**kwargs)


def test_stats_count_sliding_windows() -> None:
    clock = FakeClock()
    monitor = _make_monitor(clock=clock)

    monitor.record_request()
    clock.now += 120
    monitor.record_request()
    monitor.record_request()

    stats = monitor.get_stats()
    assert stats.total_requests == 3
    assert stats.requests_last_hour == 3
    assert stats.requests_last_minute == 2
    assert stats.warning_level == "safe"


def test_requests_older_than_an_hour_are_dropped() -> None:
    clock = FakeClock()
    monitor = _make_monitor(clock=clock)

    monitor.record_request()
    clock.now += 3601
    monitor.record_request()

    assert monitor.get_stats().requests_last_hour == 1
    assert monitor.get_stats().total_requests == 1


def test_quota_headers_drive_warning_level() -> None:
    monitor = _make_monitor()

    monitor.record_request(httpx.Headers({"x-ratelimit-limit": "5000", "x-ratelimit-remaining": "1000"}))
    assert monitor.get_stats().warning_level == "warning"
    assert monitor.should_throttle().wait_seconds == WARNING_WAIT_SECONDS

    monitor.record_request(httpx.Headers({"x-ratelimit-limit": "5000", "x-ratelimit-remaining": "100"}))
    decision = monitor.should_throttle()
    assert monitor.get_stats().warning_level == "critical"
    assert decision.throttle
    assert decision.wait_seconds == CRITICAL_WAIT_SECONDS


def test_headers_without_quota_are_ignored() -> None:
    monitor = _make_monitor()

    monitor.record_request(httpx.Headers({"content-type": "application/json"}))

    assert monitor.get_last_quota() is None


def test_request_rate_estimate_without_headers() -> None:
    monitor = _make_monitor(hourly_limit=100)

    # 2 requests in the last minute -> 120/hour, above 90% of 100
    monitor.record_request()
    monitor.record_request()

    assert monitor.get_stats().estimated_hourly_rate == 120
    assert monitor.get_stats().warning_level == "critical"


def test_rate_limit_hit_uses_retry_after_then_clears() -> None:
    clock = FakeClock()
    monitor = _make_monitor(clock=clock)

    monitor.mark_rate_limit_hit(retry_after=30)
    decision = monitor.should_throttle()
    assert decision.throttle
    assert decision.wait_seconds == pytest.approx(30)
    assert monitor.get_last_quota() is None

    clock.now += 31
    assert monitor.should_throttle().throttle is False


def test_rate_limit_hit_defaults_to_one_minute() -> None:
    monitor = _make_monitor()

    monitor.mark_rate_limit_hit()

    assert monitor.should_throttle().wait_seconds == pytest.approx(DEFAULT_RESET_SECONDS)


async def test_wait_if_needed_sleeps_recommended_time(fake_sleep) -> None:
    monitor = _make_monitor(sleep=fake_sleep)

    assert await monitor.wait_if_needed() == 0.0
    monitor.mark_rate_limit_hit(retry_after=12)
    waited = await monitor.wait_if_needed()

    assert waited == pytest.approx(12)
    assert fake_sleep.calls == [pytest.approx(12)]


def test_reset_clears_state() -> None:
    monitor = _make_monitor()
    monitor.record_request()
    monitor.mark_rate_limit_hit()

    monitor.reset()

    assert monitor.get_stats().total_requests == 0
    assert monitor.should_throttle().throttle is False


def test_rate_limit_hit_annotates_known_quota() -> None:
    monitor = _make_monitor()
    monitor.record_request(httpx.Headers({"x-ratelimit-limit": "5000", "x-ratelimit-remaining": "4000"}))

    monitor.mark_rate_limit_hit(retry_after=45)

    assert monitor.get_last_quota().retry_after == 45
    assert monitor.get_last_quota().remaining == 4000
    assert monitor.should_throttle().wait_seconds == pytest.approx(45)
