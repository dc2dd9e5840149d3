"""Tests for environment-driven configuration and credentials."""
from __future__ import annotations

import os

import pytest

from src.config import Config, get_config, load_environment, reset_config
from src.config.secure_config import TingwuCredentials, require_credentials
from src.exceptions import ConfigurationError


class TestConfigDefaults:
    """Values used when nothing is configured."""

    def test_defaults(self):
        config = Config()

        assert config.log_level == "INFO"
        assert config.tingwu_app_key is None
        assert config.tingwu_region_id == "cn-beijing"
        assert config.create_rate_limit == 20
        assert config.inspect_rate_limit == 100
        assert config.rate_limit_window == 1.0
        assert config.task_cache_ttl == 3600
        assert config.completed_task_cache_ttl == 86400
        assert config.active_task_cache_ttl == 300
        assert config.cache_fresh_window == 30
        assert config.vocabulary_cache_ttl == 604800
        assert config.poll_max_attempts == 30
        assert config.poll_interval == 3.0
        assert config.fetch_verify_ssl is True


class TestConfigFromEnvironment:
    """Environment overrides."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TINGWU_APP_KEY", "app-key")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("POLL_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("POLL_INTERVAL", "0.5")
        monkeypatch.setenv("FETCH_VERIFY_SSL", "no")

        config = Config()

        assert config.tingwu_app_key == "app-key"
        assert config.log_level == "DEBUG"
        assert config.poll_max_attempts == 5
        assert config.poll_interval == 0.5
        assert config.fetch_verify_ssl is False

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("POLL_MAX_ATTEMPTS", "many")
        with pytest.raises(ValueError, match="POLL_MAX_ATTEMPTS"):
            Config()

    def test_env_file_is_loaded_without_overriding(self, monkeypatch, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("TINGWU_APP_KEY=from-file\nTINGWU_REGION_ID=cn-hangzhou\n")
        monkeypatch.setenv("TINGWU_REGION_ID", "cn-shanghai")

        try:
            assert load_environment(env_file) is True
            config = Config()
        finally:
            os.environ.pop("TINGWU_APP_KEY", None)

        assert config.tingwu_app_key == "from-file"
        assert config.tingwu_region_id == "cn-shanghai"

    def test_missing_env_file(self, tmp_path):
        assert load_environment(tmp_path / "absent.env") is False


class TestConfigValidate:
    """Range checks."""

    @pytest.mark.parametrize(
        "field,value",
        [
            ("create_rate_limit", 0),
            ("poll_max_attempts", 0),
            ("rate_limit_window", 0),
            ("task_cache_ttl", -1),
            ("poll_interval", -0.5),
        ],
    )
    def test_invalid_values(self, field, value):
        config = Config(**{field: value})
        with pytest.raises(ValueError, match=field):
            config.validate()

    def test_valid_config(self):
        Config().validate()


class TestGetConfig:
    """Process default instance."""

    def test_is_cached_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("POLL_INTERVAL", "9")
        assert get_config().poll_interval == first.poll_interval

        reset_config()
        assert get_config().poll_interval == 9.0

    def test_invalid_environment_fails_fast(self, monkeypatch):
        monkeypatch.setenv("CREATE_RATE_LIMIT", "0")
        with pytest.raises(ValueError):
            get_config()


class TestCredentials:
    """Secret handling."""

    def test_require_credentials(self, monkeypatch):
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_ID", "id-123")
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_SECRET", "secret-456")

        credentials = require_credentials()

        assert credentials.access_key_id.get_secret_value() == "id-123"
        assert "secret-456" not in repr(credentials)

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_ID", "id-123")

        with pytest.raises(ConfigurationError) as exc_info:
            require_credentials()

        assert exc_info.value.data == {"missing": ["ALIYUN_ACCESS_KEY_SECRET"]}

    def test_blank_values_count_as_missing(self, monkeypatch):
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_ID", "   ")
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_SECRET", "")

        assert TingwuCredentials().missing_keys() == ["ALIYUN_ACCESS_KEY_ID", "ALIYUN_ACCESS_KEY_SECRET"]

    def test_credentials_from_env_file(self, tmp_path):
        env_file = tmp_path / "creds.env"
        env_file.write_text("ALIYUN_ACCESS_KEY_ID=file-id\nALIYUN_ACCESS_KEY_SECRET=file-secret\n")

        credentials = require_credentials(env_file)

        assert credentials.access_key_secret.get_secret_value() == "file-secret"
