"""
Bounded retry with exponential backoff for exchange calls.

Transient failures (rate limits, timeouts, connection errors and exchange
errors flagged retryable) are retried; permanent rejections propagate on
the first attempt.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from src.core.constants import (
    DEFAULT_RETRY_BACKOFF_FACTOR,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_JITTER,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
)
from src.core.exceptions.backtest import ConfigurationError
from src.core.exceptions.exchange import (
    ExchangeError,
    MaxRetriesExceededError,
    OrderRejectedError,
    RateLimitedError,
)
from src.core.settings import EngineSettings

type SleepFunction = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters. Delay for attempt n is base * factor**(n-1), capped, jittered."""

    max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_BASE_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY
    backoff_factor: float = DEFAULT_RETRY_BACKOFF_FACTOR
    jitter: float = DEFAULT_RETRY_JITTER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ConfigurationError("Retry delays must satisfy 0 <= base_delay <= max_delay")
        if not 0 <= self.jitter < 1:
            raise ConfigurationError(f"jitter must be in [0, 1), got {self.jitter}")

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )


def is_retryable(error: BaseException) -> bool:
    """Check whether an error is worth another attempt."""
    match error:
        case OrderRejectedError():
            return False
        case RateLimitedError():
            return True
        case ExchangeError():
            return error.retryable
        case TimeoutError() | ConnectionError():
            return True
        case _:
            return False


def calculate_delay(
    attempt: int, policy: RetryPolicy, rng: Callable[[], float] = random.random
) -> float:
    """
    Backoff before the retry following a failed attempt.

    Args:
        attempt: 1-based number of the attempt that failed
        policy: Backoff parameters
        rng: Uniform [0, 1) source, injectable for tests
    """
    delay = min(policy.base_delay * policy.backoff_factor ** (attempt - 1), policy.max_delay)
    if policy.jitter:
        delay *= 1 + policy.jitter * (2 * rng() - 1)
    return max(delay, 0.0)


async def with_retry[T](
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    operation_name: str = "exchange call",
    sleep: SleepFunction = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory
        policy: Backoff parameters, defaults to 3 attempts starting at 1s
        operation_name: Label for log messages
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The operation's result

    Raises:
        MaxRetriesExceededError: When every attempt failed transiently
        Exception: Any non-retryable error, unchanged
    """
    policy = policy or RetryPolicy()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                logger.error(f"{operation_name} failed permanently: {e}")
                raise
            if attempt == policy.max_attempts:
                logger.error(f"{operation_name} failed after {attempt} attempts: {e}")
                raise MaxRetriesExceededError(attempt, e) from e

            delay = calculate_delay(attempt, policy)
            if isinstance(e, RateLimitedError) and e.retry_after is not None:
                delay = max(delay, e.retry_after)
            logger.warning(
                f"{operation_name} failed (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await sleep(delay)

    raise AssertionError("unreachable")
