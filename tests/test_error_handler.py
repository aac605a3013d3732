import random

import httpx
import pytest
from sqlalchemy.exc import IntegrityError

from congress_sync.exceptions import CongressApiError
from congress_sync.services.error_handler import ErrorHandler, ErrorSeverity, ErrorType
from congress_sync.utils.retry import RetryConfig, calculate_backoff

NO_JITTER = RetryConfig(max_attempts=3, initial_delay=1.0, jitter=0.0)


def _make_handler(fake_sleep, database=None) -> ErrorHandler:
    return ErrorHandler(database, sleep=fake_sleep, rng=random.Random(7))


def test_classify_rate_limit_uses_retry_after_floor(fake_sleep) -> None:
    handler = _make_handler(fake_sleep)

    plain = handler.classify(CongressApiError(429, "Rate limit exceeded"))
    longer = handler.classify(CongressApiError(429, "Rate limit exceeded", retry_after=120))

    assert plain.type == ErrorType.RETRYABLE
    assert plain.severity == ErrorSeverity.MEDIUM
    assert plain.should_retry
    assert plain.retry_after_seconds == 60
    assert longer.retry_after_seconds == 120


def test_classify_not_found_is_fatal(fake_sleep) -> None:
    classified = _make_handler(fake_sleep).classify(CongressApiError(404, "Not found"))

    assert classified.type == ErrorType.FATAL
    assert classified.severity == ErrorSeverity.LOW
    assert classified.should_retry is False
    assert classified.retry_after_seconds is None


@pytest.mark.parametrize(
    "error, expected_type, expected_severity",
    [
        (httpx.ConnectError("connection refused"), ErrorType.TRANSIENT, ErrorSeverity.MEDIUM),
        (CongressApiError(400, "Bad request"), ErrorType.FATAL, ErrorSeverity.LOW),
        (CongressApiError(403, "Forbidden"), ErrorType.CONFIGURATION, ErrorSeverity.CRITICAL),
        (CongressApiError(503, "Service unavailable"), ErrorType.RETRYABLE, ErrorSeverity.HIGH),
        (IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")), ErrorType.FATAL, ErrorSeverity.HIGH),
        (ValueError("invalid bill type"), ErrorType.FATAL, ErrorSeverity.LOW),
        (RuntimeError("something odd"), ErrorType.UNKNOWN, ErrorSeverity.MEDIUM),
    ],
)
def test_classification_table(fake_sleep, error, expected_type, expected_severity) -> None:
    classified = _make_handler(fake_sleep).classify(error)

    assert classified.type == expected_type
    assert classified.severity == expected_severity
    assert classified.should_retry == (classified.retry_after_seconds is not None)


def test_calculate_backoff_bounds() -> None:
    config = RetryConfig(initial_delay=1.0, max_delay=60.0, backoff_multiplier=2.0, jitter=0.1)
    rng = random.Random(1)

    for attempt in range(1, 10):
        base = min(60.0, 1.0 * 2.0 ** (attempt - 1))
        delay = calculate_backoff(attempt, config, rng=rng)
        assert base <= delay <= base + 0.1

    assert calculate_backoff(1, NO_JITTER, suggested_delay=60) == 60


def test_calculate_backoff_rejects_zero_attempt() -> None:
    with pytest.raises(ValueError):
        calculate_backoff(0)


async def test_with_retry_recovers_from_server_errors(fake_sleep) -> None:
    handler = _make_handler(fake_sleep)
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise CongressApiError(503, "Service unavailable")
        return "page"

    assert await handler.with_retry(operation, NO_JITTER) == "page"

    assert calls == 3
    assert fake_sleep.calls == [30.0, 30.0]
    metrics = handler.get_metrics()
    assert metrics["retries_attempted"] == 2
    assert metrics["retries_succeeded"] == 1
    assert metrics["retries_failed"] == 0
    assert metrics["errors_by_type"] == {"retryable": 2}


async def test_with_retry_does_not_retry_fatal_errors(fake_sleep) -> None:
    handler = _make_handler(fake_sleep)

    async def operation() -> None:
        raise CongressApiError(404, "Not found")

    with pytest.raises(CongressApiError):
        await handler.with_retry(operation, NO_JITTER)

    assert fake_sleep.calls == []
    assert handler.get_metrics()["retries_failed"] == 1


async def test_with_retry_gives_up_after_max_attempts(fake_sleep) -> None:
    handler = _make_handler(fake_sleep)
    calls = 0

    async def operation() -> None:
        nonlocal calls
        calls += 1
        raise httpx.ReadTimeout("timed out")

    with pytest.raises(httpx.ReadTimeout):
        await handler.with_retry(operation, NO_JITTER)

    assert calls == 3
    assert fake_sleep.calls == [5.0, 5.0]


async def test_critical_errors_are_persisted(database, fake_sleep) -> None:
    handler = _make_handler(fake_sleep, database)

    async def operation() -> None:
        raise CongressApiError(401, "Unauthorized")

    with pytest.raises(CongressApiError):
        await handler.with_retry(operation, NO_JITTER, context={"resource": "bills"})

    recent = await handler.get_recent_errors(only_critical=True)
    assert len(recent) == 1
    assert recent[0]["error_type"] == "configuration"
    assert recent[0]["severity"] == "critical"
    assert recent[0]["context"] == {"resource": "bills"}

    stats = await handler.get_error_stats(hours_back=1)
    assert stats["total_errors"] == 1
    assert stats["critical_errors"] == 1
    assert await handler.should_alert() is True


async def test_non_critical_errors_are_not_persisted(database, fake_sleep) -> None:
    handler = _make_handler(fake_sleep, database)

    async def operation() -> None:
        raise CongressApiError(404, "Not found")

    with pytest.raises(CongressApiError):
        await handler.with_retry(operation, NO_JITTER)

    assert await handler.get_recent_errors() == []
    assert await handler.should_alert() is False


def test_reset_metrics(fake_sleep) -> None:
    handler = _make_handler(fake_sleep)
    handler.get_metrics()["errors_by_type"]["fatal"] = 99

    assert handler.get_metrics()["errors_by_type"] == {}

    handler._metrics["total_errors"] = 4
    handler.reset_metrics()
    assert handler.get_metrics()["total_errors"] == 0


async def test_error_log_requires_database(fake_sleep) -> None:
    with pytest.raises(RuntimeError):
        await _make_handler(fake_sleep).get_recent_errors()
