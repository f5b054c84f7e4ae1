"""Retry with transient-vs-permanent error classification.

Usage:
    from divban.retry import HEAVY_RETRY, is_transient_system_error, retry_async

    result = await retry_async(
        lambda: exec_as_user(user, uid, argv, timeout=600),
        schedule=HEAVY_RETRY,
        should_retry=is_transient_system_error,
    )
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from divban.errors import DivbanError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# Retry Schedules
# ============================================================================


@dataclass(frozen=True)
class RetrySchedule:
    """Bounded backoff: ``retries`` extra attempts after the first."""

    base_delay: float       # seconds before the first retry
    retries: int
    exponential: bool = False
    jitter: bool = False

    def delays(self) -> list[float]:
        result = []
        for attempt in range(self.retries):
            delay = self.base_delay * (2**attempt if self.exponential else 1)
            if self.jitter:
                delay *= random.uniform(0.8, 1.2)
            result.append(delay)
        return result


# Directory creation, chown
SYSTEM_RETRY = RetrySchedule(base_delay=0.2, retries=4, exponential=True, jitter=True)

# Database dump/restore
HEAVY_RETRY = RetrySchedule(base_delay=0.5, retries=3, exponential=True, jitter=True)


# ============================================================================
# Error Classification
# ============================================================================

TRANSIENT_ERROR_PATTERNS: tuple[str, ...] = (
    "connection refused",
    "connection reset",
    "connection timed out",
    "temporarily unavailable",
    "resource temporarily unavailable",
    "device or resource busy",
    "text file busy",
    "eagain",
    "ebusy",
    "etimedout",
    "econnrefused",
    "econnreset",
    "no route to host",
    "network is unreachable",
    "bus connection",
    "failed to connect",
    "socket not found",
    "operation timed out",
)

# Permanent patterns win over transient ones
PERMANENT_ERROR_PATTERNS: tuple[str, ...] = (
    "exceeded timeout",
    "no such file or directory",
    "permission denied",
    "operation not permitted",
    "invalid argument",
    "not found",
    "does not exist",
    "unknown unit",
    "unit not found",
    "no such user",
    "user does not exist",
)


def _failure_text(error: BaseException) -> str:
    """Text describing why ``error`` happened.

    Errors raised ``from`` a lower-level exception are classified on that
    cause only; their own message also carries the command line, whose
    arguments (session bus address, container names) must not be read as
    a failure reason.
    """
    cause = error.__cause__
    return str(cause if cause is not None else error).lower()


def is_transient_system_error(error: BaseException) -> bool:
    """True if the failure looks retryable and not permanent."""
    text = _failure_text(error)
    if any(pattern in text for pattern in PERMANENT_ERROR_PATTERNS):
        return False
    return any(pattern in text for pattern in TRANSIENT_ERROR_PATTERNS)


# ============================================================================
# Retry Loop
# ============================================================================


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    schedule: RetrySchedule,
    should_retry: Callable[[BaseException], bool] = is_transient_system_error,
) -> T:
    """Run ``operation``, retrying divban errors that ``should_retry`` accepts.

    Permanent errors and the error from the final attempt propagate
    unchanged.
    """
    delays = schedule.delays()
    attempt = 0
    while True:
        try:
            return await operation()
        except DivbanError as e:
            if attempt >= len(delays) or not should_retry(e):
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(
                "Transient failure (attempt %d/%d), retrying in %.2fs: %s",
                attempt,
                len(delays) + 1,
                delay,
                e,
            )
            await asyncio.sleep(delay)
