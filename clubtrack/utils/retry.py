"""
Backoff retries for idempotent backend reads.

Roster, attendance, evaluation detail and test list fetches go through
call_with_retry. Writes never do: a failed submit is reported and the user
decides whether to send it again.

Only transport failures (timeouts, dropped connections) are retried. An HTTP
error status is the server's answer and is returned to the caller as is.
"""

import time
import random
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

import requests

logger = logging.getLogger(__name__)


class MaxRetriesExceeded(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, message: str, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.last_exception = last_exception


class BackoffStrategy(Enum):
    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


TRANSPORT_ERRORS: Tuple[Type[Exception], ...] = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
)


@dataclass
class RetryConfig:
    """
    Attempts = max_retries + 1.

    Delays grow from base_delay according to backoff_strategy, are capped at
    max_delay and, with jitter on, spread by +/- jitter_factor.
    """
    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 10.0
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    backoff_factor: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSPORT_ERRORS


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to wait after failed attempt number `attempt` (0-based)."""
    growth = {
        BackoffStrategy.CONSTANT: 1,
        BackoffStrategy.LINEAR: attempt + 1,
        BackoffStrategy.EXPONENTIAL: config.backoff_factor ** attempt,
    }[config.backoff_strategy]

    delay = min(config.base_delay * growth, config.max_delay)
    if config.jitter:
        spread = delay * config.jitter_factor
        delay += random.uniform(-spread, spread)
    return max(0.0, delay)


def call_with_retry(
    func: Callable,
    *args,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    **kwargs
) -> Any:
    """
    Call func(*args, **kwargs), retrying transport failures with backoff.

    Args:
        func: The read to perform
        config: Retry policy (defaults to RetryConfig())
        on_retry: Called as on_retry(retry_number, error, delay) before each wait

    Returns:
        func's result

    Raises:
        MaxRetriesExceeded: When the last attempt also failed with a retryable error.
            Non-retryable exceptions propagate unchanged on first occurrence.
    """
    config = config or RetryConfig()
    name = getattr(func, '__name__', 'call')

    attempt = 0
    while True:
        try:
            return func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt >= config.max_retries:
                logger.error(
                    f"{name} failed after {attempt + 1} attempt(s): {e}",
                    extra={"attempts": attempt + 1, "error_type": type(e).__name__}
                )
                raise MaxRetriesExceeded(
                    f"{name} failed after {attempt + 1} attempt(s): {e}", last_exception=e
                ) from e

            delay = calculate_delay(attempt, config)
            logger.warning(
                f"{name}: {type(e).__name__}, retry {attempt + 1}/{config.max_retries} in {delay:.2f}s",
                extra={"attempt": attempt + 1, "delay_s": round(delay, 2)}
            )
            if on_retry:
                on_retry(attempt + 1, e, delay)
            time.sleep(delay)
            attempt += 1
