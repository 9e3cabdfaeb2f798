"""
Resilience Patterns

Retry with backoff and ordered fallback chains for building
fault-tolerant pipelines.
"""

from src.common.resilience.fallback import (
    FallbackAttemptError,
    FallbackExhausted,
    FallbackOutcome,
    RejectedResult,
    first_success,
)
from src.common.resilience.retry import RetryConfig, retry_with_backoff

__all__ = [
    "FallbackAttemptError",
    "FallbackExhausted",
    "FallbackOutcome",
    "RejectedResult",
    "first_success",
    "retry_with_backoff",
    "RetryConfig",
]
