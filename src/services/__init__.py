"""Core services for remote task orchestration."""

from .rate_limiter import RateLimit, RateLimiter
from .result_fetcher import ResultContentFetcher
from .task_orchestrator import TaskCachePolicy, TaskOrchestrator
from .transcription import TranscriptionService

__all__ = [
    "RateLimit",
    "RateLimiter",
    "ResultContentFetcher",
    "TaskCachePolicy",
    "TaskOrchestrator",
    "TranscriptionService",
]
