"""
Retry helper for retryable conflicts.

Only ``ConflictError`` instances flagged ``retryable`` (today: serial number
collisions) are retried.  Everything else propagates on the first attempt.

The retried callable must be a complete unit of work: it opens its own
session (or relies on ``auto_commit``) so that a failed attempt leaves
nothing behind.

Usage:
    def attempt():
        with session_scope() as session:
            return TransactionCoordinator(session, auto_commit=False).create_donation(...)

    batch = retry_on_conflict(attempt, RetryPolicy(max_attempts=5))
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from inventory_kernel.domain.policy import DEFAULT_RETRY_POLICY, RetryPolicy
from inventory_kernel.exceptions import ConflictError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.conflict_retry")

T = TypeVar("T")


def retry_on_conflict(
    operation: Callable[[], T],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation``, retrying retryable conflicts with exponential backoff.

    Raises:
        ConflictError: The last conflict once ``policy.max_attempts`` is
            exhausted, or any non-retryable conflict immediately.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except ConflictError as exc:
            if not exc.retryable or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "conflict_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": delay,
                    "error_code": exc.code,
                },
            )
            sleep(delay)
            attempt += 1
