"""Fixed-window rate limiter for remote API operations.

Each operation type ("create", "inspect", ...) owns a quota of calls per
window. A caller that finds the quota spent waits for the window to roll
over and then competes again, looping until it gets a slot.
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Mapping, Optional

from ..exceptions import TaskValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

CREATE = "create"
INSPECT = "inspect"


@dataclass(frozen=True)
class RateLimit:
    """Call budget for one operation type.

    Attributes:
        quota: Maximum calls per window
        window: Window length in seconds
    """

    quota: int
    window: float = 1.0

    def __post_init__(self) -> None:
        if self.quota < 1:
            raise ValueError("quota must be at least 1")
        if self.window <= 0:
            raise ValueError("window must be positive")


@dataclass
class RateWindow:
    """Mutable counter for the current window of one operation type."""

    count: int = 0
    window_start: float = 0.0
    total_acquired: int = 0
    total_waits: int = 0


DEFAULT_LIMITS: Dict[str, RateLimit] = {
    CREATE: RateLimit(quota=20, window=1.0),
    INSPECT: RateLimit(quota=100, window=1.0),
}


class RateLimiter:
    """Per-operation-type fixed-window limiter, safe for concurrent callers.

    The window check and the increment happen under one lock; the wait
    happens outside it so waiting callers never hold up others.
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, RateLimit]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the limiter.

        Args:
            limits: Budget per operation type (defaults to create=20/s, inspect=100/s)
            clock: Monotonic time source in seconds
            sleep: Coroutine used to wait for a window to roll over
        """
        self._limits: Dict[str, RateLimit] = dict(limits if limits is not None else DEFAULT_LIMITS)
        self._windows: Dict[str, RateWindow] = {
            op_type: RateWindow(window_start=clock()) for op_type in self._limits
        }
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, **kwargs) -> "RateLimiter":
        """Build a limiter from a ``Config`` instance."""
        return cls(
            limits={
                CREATE: RateLimit(config.create_rate_limit, config.rate_limit_window),
                INSPECT: RateLimit(config.inspect_rate_limit, config.rate_limit_window),
            },
            **kwargs,
        )

    @property
    def limits(self) -> Dict[str, RateLimit]:
        return dict(self._limits)

    def try_acquire(self, op_type: str) -> float:
        """Take a slot if one is free.

        Returns:
            0.0 if a slot was taken, otherwise seconds until the window rolls over

        Raises:
            TaskValidationError: If ``op_type`` has no configured limit
        """
        limit = self._limits.get(op_type)
        if limit is None:
            raise TaskValidationError(
                f"Unknown rate limit operation type: {op_type}",
                data={"op_type": op_type, "known": sorted(self._limits)},
            )

        with self._lock:
            window = self._windows[op_type]
            now = self._clock()
            elapsed = now - window.window_start
            if elapsed >= limit.window:
                window.count = 0
                window.window_start = now
                elapsed = 0.0

            if window.count >= limit.quota:
                window.total_waits += 1
                return max(limit.window - elapsed, 0.0)

            window.count += 1
            window.total_acquired += 1
            return 0.0

    async def acquire(self, op_type: str) -> float:
        """Wait until a call of ``op_type`` is allowed and reserve it.

        Returns:
            Total seconds spent waiting
        """
        waited = 0.0
        while True:
            wait = self.try_acquire(op_type)
            if wait == 0.0:
                if waited:
                    logger.debug(f"Rate limit slot for '{op_type}' acquired after {waited:.3f}s")
                return waited

            limit = self._limits[op_type]
            logger.warning(
                f"Rate limit reached for '{op_type}' ({limit.quota}/{limit.window}s), "
                f"waiting {wait:.3f}s"
            )
            await self._sleep(wait)
            waited += wait

    def get_stats(self) -> Dict[str, Dict[str, float]]:
        """Current window usage per operation type."""
        with self._lock:
            return {
                op_type: {
                    "quota": self._limits[op_type].quota,
                    "window": self._limits[op_type].window,
                    "count": window.count,
                    "total_acquired": window.total_acquired,
                    "total_waits": window.total_waits,
                }
                for op_type, window in self._windows.items()
            }
