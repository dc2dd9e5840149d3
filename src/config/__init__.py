"""Configuration management using environment variables.

Values are read once into a ``Config`` instance and then passed explicitly
to the components that need them; nothing in the orchestration layer reads
the process default behind the caller's back.
"""
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .secure_config import TingwuCredentials, require_credentials

logger = logging.getLogger(__name__)


def _parse_bool(value: str | bool | None) -> bool:
    """Parse boolean value from various formats."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on", "enabled")


def _getenv(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.getenv(key, default)


def _getenv_int(key: str, default: int) -> int:
    """Get integer environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as integer
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Invalid integer value for {key}='{value}'") from e


def _getenv_float(key: str, default: float) -> float:
    """Get float environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as float
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid float value for {key}='{value}'") from e


def load_environment(env_file: Optional[Path] = None) -> bool:
    """Load a .env file into the process environment without overriding it.

    Args:
        env_file: Explicit file; defaults to searching ./.env then ~/.env

    Returns:
        True if a file was loaded
    """
    candidates = [env_file] if env_file else [Path(".env"), Path.home() / ".env"]
    for env_path in candidates:
        if env_path is not None and env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
            return True
    return False


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # ========== Application Settings ==========
    app_name: str = field(default_factory=lambda: _getenv("APP_NAME", "tingwu-task-orchestration"))
    environment: str = field(default_factory=lambda: _getenv("ENVIRONMENT", "production"))

    # ========== Logging ==========
    log_level: str = field(default_factory=lambda: _getenv("LOG_LEVEL", "INFO").upper())
    log_format: str = field(
        default_factory=lambda: _getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    log_file: Optional[str] = field(default_factory=lambda: _getenv("LOG_FILE") or None)

    # ========== Remote Task API ==========
    tingwu_app_key: Optional[str] = field(default_factory=lambda: _getenv("TINGWU_APP_KEY") or None)
    tingwu_region_id: str = field(default_factory=lambda: _getenv("TINGWU_REGION_ID", "cn-beijing"))
    tingwu_endpoint: str = field(
        default_factory=lambda: _getenv("TINGWU_ENDPOINT", "tingwu.cn-beijing.aliyuncs.com")
    )

    # ========== Rate Limiting ==========
    create_rate_limit: int = field(default_factory=lambda: _getenv_int("CREATE_RATE_LIMIT", 20))
    inspect_rate_limit: int = field(default_factory=lambda: _getenv_int("INSPECT_RATE_LIMIT", 100))
    rate_limit_window: float = field(default_factory=lambda: _getenv_float("RATE_LIMIT_WINDOW", 1.0))

    # ========== Caching ==========
    cache_cleanup_interval: float = field(default_factory=lambda: _getenv_float("CACHE_CLEANUP_INTERVAL", 60.0))
    task_cache_ttl: float = field(default_factory=lambda: _getenv_float("TASK_CACHE_TTL", 3600))
    completed_task_cache_ttl: float = field(
        default_factory=lambda: _getenv_float("COMPLETED_TASK_CACHE_TTL", 86400)
    )
    active_task_cache_ttl: float = field(default_factory=lambda: _getenv_float("ACTIVE_TASK_CACHE_TTL", 300))
    cache_fresh_window: float = field(default_factory=lambda: _getenv_float("CACHE_FRESH_WINDOW", 30))
    vocabulary_cache_ttl: float = field(default_factory=lambda: _getenv_float("VOCABULARY_CACHE_TTL", 604800))

    # ========== Polling ==========
    poll_max_attempts: int = field(default_factory=lambda: _getenv_int("POLL_MAX_ATTEMPTS", 30))
    poll_interval: float = field(default_factory=lambda: _getenv_float("POLL_INTERVAL", 3.0))

    # ========== Result Fetching ==========
    fetch_timeout: float = field(default_factory=lambda: _getenv_float("FETCH_TIMEOUT", 30.0))
    fetch_max_attempts: int = field(default_factory=lambda: _getenv_int("FETCH_MAX_ATTEMPTS", 2))
    fetch_verify_ssl: bool = field(default_factory=lambda: _parse_bool(_getenv("FETCH_VERIFY_SSL", "true")))

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: Naming the first offending setting
        """
        for name in ("create_rate_limit", "inspect_rate_limit", "poll_max_attempts", "fetch_max_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        for name in ("rate_limit_window", "fetch_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in (
            "task_cache_ttl",
            "completed_task_cache_ttl",
            "active_task_cache_ttl",
            "cache_fresh_window",
            "vocabulary_cache_ttl",
            "poll_interval",
            "cache_cleanup_interval",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")


_config_instance: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get the process default config, building it on first use (thread-safe)."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                load_environment()
                config = Config()
                config.validate()
                _config_instance = config
    return _config_instance


def reset_config() -> None:
    """Drop the process default so the next ``get_config`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "Config",
    "TingwuCredentials",
    "get_config",
    "load_environment",
    "require_credentials",
    "reset_config",
]
