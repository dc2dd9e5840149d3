"""Utility modules for task orchestration."""

from .fingerprint import content_fingerprint, options_fingerprint
from .logger import configure_logger, get_logger
from .retry import (
    RetryConfig,
    RetryExhaustedError,
    calculate_delay,
    is_retriable_exception,
    retry_async,
)

__all__ = [
    "RetryConfig",
    "RetryExhaustedError",
    "calculate_delay",
    "configure_logger",
    "content_fingerprint",
    "get_logger",
    "is_retriable_exception",
    "options_fingerprint",
    "retry_async",
]
