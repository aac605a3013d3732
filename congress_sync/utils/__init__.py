"""
Utilities package for the Congress sync engine.

This package contains reusable utility classes for:
- Rate limiting and quota monitoring
- Retry backoff
- Bounded parallel execution
- Content hashing
"""

from .rate_limiter import RateLimiter
from .rate_limit_monitor import RateLimitMonitor, QuotaSnapshot, RateLimitStats, ThrottleDecision
from .parallel_executor import ParallelExecutor, ParallelExecutionResult
from .retry import RetryConfig, calculate_backoff
from .hash_utils import (
    calculate_hash,
    compute_bill_hash,
    compute_member_hash,
    compute_hearing_hash,
)

__all__ = [
    "RateLimiter",
    "RateLimitMonitor",
    "QuotaSnapshot",
    "RateLimitStats",
    "ThrottleDecision",
    "ParallelExecutor",
    "ParallelExecutionResult",
    "RetryConfig",
    "calculate_backoff",
    "calculate_hash",
    "compute_bill_hash",
    "compute_member_hash",
    "compute_hearing_hash",
]
