"""Application configuration — loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_api_base: str = "https://api.github.com"
    raw_content_base: str = "https://raw.githubusercontent.com"
    git_remote_base: str = "https://github.com"
    git_binary: str = "git"
    default_owner: str = "pnp"
    default_repo: str = "sp-dev-fx-webparts"
    default_ref: str = "main"
    download_concurrency: int = 8
    http_timeout_seconds: float = 30.0
    user_agent: str = "sample-fetcher/1.0"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("download_concurrency")
    @classmethod
    def _positive_concurrency(cls, v: int) -> int:
        if v < 1:
            msg = "download_concurrency must be at least 1."
            raise ValueError(msg)
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()
