"""Global pytest fixtures and configuration.

This module provides shared fixtures for all tests including:
- A controllable clock shared by the cache, rate limiter and orchestrator
- A scripted remote task client
- Isolated cache / rate limiter / orchestrator instances per test
- Environment isolation for configuration tests
"""
from __future__ import annotations

import logging
from typing import Generator
from unittest.mock import AsyncMock, Mock

import pytest

from src.cache.ttl_cache import TTLCache
from src.config import reset_config
from src.models.task import AssembledResult
from src.services.rate_limiter import CREATE, INSPECT, RateLimit, RateLimiter
from src.services.task_orchestrator import TaskCachePolicy, TaskOrchestrator
from tests.mocks.remote_mocks import RESULT_URLS, FakeClock, FakeRemoteClient

CONFIG_ENV_VARS = (
    "ALIYUN_ACCESS_KEY_ID",
    "ALIYUN_ACCESS_KEY_SECRET",
    "TINGWU_APP_KEY",
    "TINGWU_REGION_ID",
    "TINGWU_ENDPOINT",
    "LOG_LEVEL",
    "LOG_FILE",
    "CREATE_RATE_LIMIT",
    "INSPECT_RATE_LIMIT",
    "RATE_LIMIT_WINDOW",
    "POLL_MAX_ATTEMPTS",
    "POLL_INTERVAL",
    "FETCH_MAX_ATTEMPTS",
    "FETCH_VERIFY_SSL",
    "TASK_CACHE_TTL",
    "COMPLETED_TASK_CACHE_TTL",
    "ACTIVE_TASK_CACHE_TTL",
    "CACHE_FRESH_WINDOW",
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Run every test without inherited settings or a stray .env file.

    Args:
        monkeypatch: Pytest's monkeypatch fixture
        tmp_path: Per-test temporary directory used as the working directory
    """
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock starting at a fixed epoch; its ``sleep`` advances time instantly."""
    return FakeClock()


@pytest.fixture
def cache(fake_clock: FakeClock) -> Generator[TTLCache, None, None]:
    """TTL cache on the fake clock with the background sweep disabled.

    Yields:
        TTLCache destroyed after the test
    """
    ttl_cache = TTLCache(cleanup_interval=None, clock=fake_clock, name="test")
    yield ttl_cache
    ttl_cache.destroy()


@pytest.fixture
def rate_limiter(fake_clock: FakeClock) -> RateLimiter:
    """Rate limiter on the fake clock with small quotas."""
    return RateLimiter(
        limits={CREATE: RateLimit(quota=5, window=1.0), INSPECT: RateLimit(quota=10, window=1.0)},
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest.fixture
def remote_client() -> FakeRemoteClient:
    """Remote client whose jobs complete on the second status check."""
    return FakeRemoteClient(
        statuses=["ONGOING", "COMPLETED"],
        result_refs={"transcription": RESULT_URLS["transcription"]},
    )


@pytest.fixture
def assembled_result() -> AssembledResult:
    return AssembledResult(transcript={"Transcription": {"Paragraphs": []}})


@pytest.fixture
def fetcher(assembled_result: AssembledResult) -> Mock:
    """Result content fetcher double returning ``assembled_result``."""
    mock_fetcher = Mock()
    mock_fetcher.fetch_all = AsyncMock(return_value=assembled_result)
    mock_fetcher.aclose = AsyncMock()
    return mock_fetcher


@pytest.fixture
def orchestrator(remote_client, cache, rate_limiter, fetcher, fake_clock) -> TaskOrchestrator:
    """Orchestrator wired to the fakes; poll sleeps advance the fake clock."""
    return TaskOrchestrator(
        client=remote_client,
        cache=cache,
        rate_limiter=rate_limiter,
        fetcher=fetcher,
        policy=TaskCachePolicy(),
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler and level changes made by logging setup under test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.NOTSET)
