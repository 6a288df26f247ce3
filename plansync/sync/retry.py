"""
Retry helper for outbound provider calls.

Retryable errors (TransientProviderError) are retried with exponential
backoff; everything else fails on the first attempt.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from plansync.config import Settings, get_settings
from plansync.exceptions import CalendarSyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempts and backoff for a remote call.

    The n-th retry waits base_delay * 2**(n-1) seconds, capped at max_delay.
    """

    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            attempts=settings.sync_retry_attempts,
            base_delay=settings.sync_retry_base_delay,
            max_delay=settings.sync_retry_max_delay,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Transient provider error on attempt {retry_state.attempt_number}, retrying: {error}"
    )


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    if isinstance(exception, CalendarSyncError):
        return exception.retryable
    return False


def call_with_retry(
    func: Callable[..., T],
    *args,
    policy: Optional[RetryPolicy] = None,
    **kwargs,
) -> T:
    """
    Call `func`, retrying transient provider failures.

    Raises:
        The last exception once attempts are exhausted, or the first
        non-retryable exception unchanged.
    """
    policy = policy or RetryPolicy()
    retrying = Retrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
        retry=retry_if_exception(_is_retryable_error),
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(func, *args, **kwargs)
