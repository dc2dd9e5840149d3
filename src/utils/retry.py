"""Retry with exponential backoff for outbound HTTP calls.

Used by the result content fetcher: artifact documents live on object
storage that occasionally answers 5xx or drops connections, and a second
attempt usually succeeds.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})
MAX_ATTEMPTS_LIMIT = 10


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy.

    Attributes:
        max_attempts: Total attempts, the first call included (1-10)
        base_delay: Seconds to wait before the first retry
        max_delay: Ceiling for a single wait
        exponential_base: Growth factor between consecutive waits
        jitter: Spread each wait by up to 25% either way
        retriable_exceptions: Exception types worth another attempt
        retriable_status_codes: HTTP statuses worth another attempt; any 5xx also qualifies
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retriable_exceptions: Tuple[Type[BaseException], ...] = (ConnectionError, TimeoutError)
    retriable_status_codes: FrozenSet[int] = field(default=RETRIABLE_STATUS_CODES)

    def __post_init__(self) -> None:
        problems = []
        if not 1 <= self.max_attempts <= MAX_ATTEMPTS_LIMIT:
            problems.append(f"max_attempts must be between 1 and {MAX_ATTEMPTS_LIMIT}")
        if self.base_delay < 0:
            problems.append("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            problems.append("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            problems.append("exponential_base must be >= 1")
        if problems:
            raise ValueError("; ".join(problems))

    def delay_for(self, retry_number: int) -> float:
        """Wait before the given retry (1-based); 0 for the initial call."""
        return calculate_delay(
            retry_number, self.base_delay, self.max_delay, self.exponential_base, self.jitter
        )

    def should_retry(self, error: BaseException) -> bool:
        return is_retriable_exception(error, self.retriable_exceptions, self.retriable_status_codes)


class RetryExhaustedError(Exception):
    """Every attempt failed with a retriable error.

    Attributes:
        attempts: Attempts made
        last_exception: Error from the final attempt
        total_delay: Seconds spent waiting between attempts
    """

    def __init__(self, attempts: int, last_exception: BaseException, total_delay: float) -> None:
        self.attempts = attempts
        self.last_exception = last_exception
        self.total_delay = total_delay
        super().__init__(f"Gave up after {attempts} attempts ({total_delay:.2f}s waiting): {last_exception}")


def calculate_delay(
    retry_number: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool = True,
) -> float:
    """Backoff for a retry, clamped to ``[0, max_delay]``."""
    if retry_number < 1:
        return 0.0
    delay = min(base_delay * exponential_base ** (retry_number - 1), max_delay)
    if jitter:
        delay *= random.uniform(0.75, 1.25)
    return min(max(delay, 0.0), max_delay)


def is_retriable_exception(
    exception: BaseException,
    retriable_exceptions: Tuple[Type[BaseException], ...],
    retriable_status_codes: FrozenSet[int] = RETRIABLE_STATUS_CODES,
) -> bool:
    """Classify an error as transient or final.

    Errors carrying an HTTP response (``httpx.HTTPStatusError``) are judged
    by status alone: listed statuses and any 5xx retry, everything else is
    final. Other errors retry when they match ``retriable_exceptions``.
    """
    status_code = getattr(getattr(exception, "response", None), "status_code", None)
    if isinstance(status_code, int):
        return status_code in retriable_status_codes or status_code >= 500
    return isinstance(exception, retriable_exceptions)


def retry_async(
    config: Optional[RetryConfig] = None,
    *,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    retriable_exceptions: Optional[Tuple[Type[BaseException], ...]] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate a coroutine function with retry and backoff.

    Either pass a complete ``config`` or override individual defaults.

    Raises:
        RetryExhaustedError: Once every attempt failed with a retriable error.
            A non-retriable error propagates unchanged from the attempt that raised it.

    Example:
        @retry_async(max_attempts=2, base_delay=0.5)
        async def download(url):
            ...
    """
    if config is None:
        overrides = {
            "max_attempts": max_attempts,
            "base_delay": base_delay,
            "retriable_exceptions": retriable_exceptions,
        }
        config = RetryConfig(**{k: v for k, v in overrides.items() if v is not None})
    policy = config

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            waited = 0.0
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not policy.should_retry(e):
                        logger.debug(f"{func.__name__} failed with a non-retriable error: {e}")
                        raise
                    if attempt >= policy.max_attempts:
                        logger.error(f"{func.__name__} failed after {attempt} attempts: {e}")
                        raise RetryExhaustedError(attempt, e, waited) from e

                    delay = policy.delay_for(attempt)
                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{policy.max_attempts} failed: {e}; "
                        f"retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    waited += delay
                    attempt += 1

        return wrapper

    return decorator
