from __future__ import annotations

from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MANIFEST_NAME = "gram.deployment.json"
DEFAULT_HOST = "app.getgram.ai"
KEYRING_USERNAME = "api_key"


class ConfigError(RuntimeError):
    pass


class Settings(BaseSettings):
    """Process configuration read from GRAM_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="GRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    api_key: str | None = None
    project_slug: str | None = None
    host: str = Field(default=DEFAULT_HOST, min_length=1)
    scheme: Literal["http", "https"] = "https"
    timeout_seconds: float = Field(default=30.0, gt=0)
    keyring_service: str = Field(default="gram", min_length=1)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}"


def load_settings(**overrides: object) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid GRAM_* configuration: {exc}") from exc
