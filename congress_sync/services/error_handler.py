"""
Error classification and retry execution for sync operations.

Every failure of an upstream or storage operation is classified into a
type/severity pair through a fixed first-match table. The retry executor
uses the classification to decide whether to back off and try again;
critical classifications are persisted to the sync error log.

Responsibility: Classify errors, retry retryable operations, track error metrics
"""

import asyncio
import json
import logging
import random
import traceback
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, TYPE_CHECKING

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..db.repositories import SyncErrorRepository
from ..exceptions import CongressApiError
from ..utils.retry import RetryConfig, calculate_backoff

if TYPE_CHECKING:
    from ..db.session import Database

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALERT_ERROR_THRESHOLD = 10


class ErrorType(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ClassifiedError:
    """Result of classifying one exception."""
    type: ErrorType
    severity: ErrorSeverity
    message: str
    should_retry: bool
    original_error: BaseException
    retry_after_seconds: Optional[float] = None
    context: Optional[Dict[str, Any]] = None


def _empty_metrics() -> Dict[str, Any]:
    return {
        "total_errors": 0,
        "errors_by_type": {},
        "errors_by_severity": {},
        "retries_attempted": 0,
        "retries_succeeded": 0,
        "retries_failed": 0,
    }


class ErrorHandler:
    """
    Error classifier and retry executor.

    Example:
        handler = ErrorHandler(database)
        page = await handler.with_retry(
            lambda: adapter.fetch(congress=118, limit=200),
            context={"resource": "bills"},
        )
    """

    def __init__(
        self,
        database: Optional["Database"] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            database: Database for the durable error log (None disables persistence)
            sleep: Async sleep used between attempts
            rng: Random source for backoff jitter
        """
        self.database = database
        self._sleep = sleep
        self._rng = rng
        self._metrics = _empty_metrics()

    # MARK: - Classification

    def classify(
        self,
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> ClassifiedError:
        """
        Classify an error, first match wins.

        The table is matched against the lower-cased message. A
        CongressApiError carries its HTTP status in the message; httpx
        transport errors, SQLAlchemy errors and pydantic validation errors
        are also recognised by type.
        """
        message = str(error).lower()

        def classified(
            error_type: ErrorType,
            severity: ErrorSeverity,
            text: str,
            retry_after: Optional[float] = None,
        ) -> ClassifiedError:
            return ClassifiedError(
                type=error_type,
                severity=severity,
                message=text,
                should_retry=retry_after is not None,
                original_error=error,
                retry_after_seconds=retry_after,
                context=context,
            )

        if "rate limit" in message or "429" in message:
            retry_after = 60.0
            if isinstance(error, CongressApiError) and error.retry_after:
                retry_after = max(retry_after, float(error.retry_after))
            return classified(
                ErrorType.RETRYABLE, ErrorSeverity.MEDIUM, "API rate limit exceeded", retry_after
            )

        if isinstance(error, (httpx.TransportError, asyncio.TimeoutError)) or any(
            token in message for token in ("econnrefused", "etimedout", "enotfound", "network")
        ):
            return classified(
                ErrorType.TRANSIENT, ErrorSeverity.MEDIUM, "Network connectivity issue", 5.0
            )

        if "400" in message or "bad request" in message:
            return classified(ErrorType.FATAL, ErrorSeverity.LOW, "Invalid request data")

        if "404" in message or "not found" in message:
            return classified(ErrorType.FATAL, ErrorSeverity.LOW, "Resource not found")

        if any(token in message for token in ("401", "403", "unauthorized", "forbidden")):
            return classified(
                ErrorType.CONFIGURATION,
                ErrorSeverity.CRITICAL,
                "Authentication/authorization failed - check API key",
            )

        if any(token in message for token in ("500", "502", "503")):
            return classified(
                ErrorType.RETRYABLE,
                ErrorSeverity.HIGH,
                "Server error - service may be down",
                30.0,
            )

        if isinstance(error, SQLAlchemyError) or "database" in message or "unique constraint" in message:
            return classified(ErrorType.FATAL, ErrorSeverity.HIGH, "Database error")

        if isinstance(error, ValidationError) or "validation" in message or "invalid" in message:
            return classified(ErrorType.FATAL, ErrorSeverity.LOW, "Data validation error")

        # Unclassified errors are not retried
        return classified(
            ErrorType.UNKNOWN,
            ErrorSeverity.MEDIUM,
            message or "Unknown error occurred",
        )

    # MARK: - Retry executor

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfig = RetryConfig(),
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run `operation`, retrying retryable failures with exponential backoff.

        Raises:
            The original exception once it is non-retryable or attempts are exhausted
        """
        attempt = 1
        while True:
            try:
                result = await operation()
            except Exception as e:
                classified = self.classify(e, context)
                self._track(classified)

                if attempt >= config.max_attempts or not classified.should_retry:
                    self._metrics["retries_failed"] += 1
                    if classified.severity == ErrorSeverity.CRITICAL:
                        await self._log_critical_error(classified)
                    raise

                delay = calculate_backoff(
                    attempt,
                    config,
                    suggested_delay=classified.retry_after_seconds,
                    rng=self._rng,
                )
                self._metrics["retries_attempted"] += 1
                logger.warning(
                    f"Attempt {attempt}/{config.max_attempts} failed: {classified.message}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await self._sleep(delay)
                attempt += 1
                continue

            if attempt > 1:
                self._metrics["retries_succeeded"] += 1
                logger.info(f"Operation succeeded after {attempt} attempts")
            return result

    def _track(self, error: ClassifiedError) -> None:
        self._metrics["total_errors"] += 1
        by_type = self._metrics["errors_by_type"]
        by_type[error.type.value] = by_type.get(error.type.value, 0) + 1
        by_severity = self._metrics["errors_by_severity"]
        by_severity[error.severity.value] = by_severity.get(error.severity.value, 0) + 1

    async def _log_critical_error(self, error: ClassifiedError) -> None:
        """Persist a critical classification; failures here are logged, never raised."""
        logger.error(
            f"CRITICAL ERROR: type={error.type.value}, message={error.message}, "
            f"context={error.context}"
        )
        if self.database is None:
            return

        try:
            async with self.database.session() as session:
                await SyncErrorRepository(session).create(
                    error_type=error.type.value,
                    severity=error.severity.value,
                    message=error.message,
                    stack_trace="".join(traceback.format_exception(
                        type(error.original_error),
                        error.original_error,
                        error.original_error.__traceback__,
                    )),
                    context=json.loads(json.dumps(error.context or {}, default=str)),
                    should_alert=True,
                )
        except Exception as log_error:
            logger.error(f"Failed to log critical error to database: {log_error}")

    # MARK: - Metrics

    def get_metrics(self) -> Dict[str, Any]:
        """Copy of the in-process error metrics."""
        return {
            **self._metrics,
            "errors_by_type": dict(self._metrics["errors_by_type"]),
            "errors_by_severity": dict(self._metrics["errors_by_severity"]),
        }

    def reset_metrics(self) -> None:
        self._metrics = _empty_metrics()

    # MARK: - Durable error log

    async def get_recent_errors(self, limit: int = 50, only_critical: bool = False) -> List[Dict[str, Any]]:
        """
        Most recent logged errors, newest first.

        `only_critical` keeps critical and high severity entries.
        """
        severities = (
            [ErrorSeverity.CRITICAL.value, ErrorSeverity.HIGH.value] if only_critical else None
        )
        async with self._require_database().session() as session:
            entries = await SyncErrorRepository(session).get_recent(limit=limit, severities=severities)
            return [self._error_to_dict(entry) for entry in entries]

    async def get_error_stats(self, hours_back: int = 24) -> Dict[str, Any]:
        since = datetime.utcnow() - timedelta(hours=hours_back)
        async with self._require_database().session() as session:
            entries = await SyncErrorRepository(session).get_since(since)

        return {
            "total_errors": len(entries),
            "errors_by_type": dict(Counter(entry.error_type for entry in entries)),
            "errors_by_severity": dict(Counter(entry.severity for entry in entries)),
            "critical_errors": sum(
                1 for entry in entries if entry.severity == ErrorSeverity.CRITICAL.value
            ),
            "recent_errors": [self._error_to_dict(entry) for entry in entries[:10]],
        }

    async def should_alert(self) -> bool:
        """True when the last hour logged more than 10 errors or any critical one."""
        stats = await self.get_error_stats(hours_back=1)
        return stats["total_errors"] > ALERT_ERROR_THRESHOLD or stats["critical_errors"] > 0

    def _require_database(self) -> "Database":
        if self.database is None:
            raise RuntimeError("ErrorHandler has no database configured")
        return self.database

    @staticmethod
    def _error_to_dict(entry) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "error_type": entry.error_type,
            "severity": entry.severity,
            "message": entry.message,
            "context": entry.context,
            "should_alert": entry.should_alert,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
