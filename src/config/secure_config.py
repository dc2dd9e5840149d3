"""Credential loading for the remote task API.

Access keys are wrapped in SecretStr so they never show up in logs, reprs
or serialized config. Read them with ``.get_secret_value()`` only at the
point where the vendor client is built.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError


class TingwuCredentials(BaseSettings):
    """Alibaba Cloud credentials used by the Tingwu client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    access_key_id: Optional[SecretStr] = Field(default=None, validation_alias="ALIYUN_ACCESS_KEY_ID")
    access_key_secret: Optional[SecretStr] = Field(
        default=None, validation_alias="ALIYUN_ACCESS_KEY_SECRET"
    )

    @field_validator("access_key_id", "access_key_secret", mode="before")
    @classmethod
    def blank_as_missing(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty or whitespace-only values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def missing_keys(self) -> list[str]:
        """Environment variable names that are not configured."""
        missing = []
        if self.access_key_id is None:
            missing.append("ALIYUN_ACCESS_KEY_ID")
        if self.access_key_secret is None:
            missing.append("ALIYUN_ACCESS_KEY_SECRET")
        return missing


def require_credentials(env_file: Optional[Path] = None) -> TingwuCredentials:
    """Load credentials and fail fast when any are missing.

    Args:
        env_file: Optional .env file to read in addition to the environment

    Returns:
        Fully populated credentials

    Raises:
        ConfigurationError: If a key is missing or malformed
    """
    try:
        if env_file is not None:
            credentials = TingwuCredentials(_env_file=str(env_file))
        else:
            credentials = TingwuCredentials()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid Tingwu credentials: {e}") from e

    missing = credentials.missing_keys()
    if missing:
        raise ConfigurationError(
            f"Missing Alibaba Cloud credentials: {', '.join(missing)}. "
            "Set them in the environment or a .env file.",
            data={"missing": missing},
        )
    return credentials
