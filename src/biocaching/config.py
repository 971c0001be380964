"""
Application settings.

Values come from environment variables prefixed with ``BIOCACHING_`` or a
local ``.env`` file::

    BIOCACHING_API_KEY=abc123
    BIOCACHING_LANGUAGE=nob
    BIOCACHING_SESSION_FILE=~/.biocaching/session.json
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT = "https://api.biocaching.com/"
DEFAULT_LANGUAGE = "eng"


class Settings(BaseSettings):
    """Runtime configuration for the client and CLI."""

    model_config = SettingsConfigDict(
        env_prefix="BIOCACHING_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "biocaching"
    app_env: str = "development"
    debug: bool = False

    api_key: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    language: str = Field(default=DEFAULT_LANGUAGE, min_length=3, max_length=3)
    session_file: Path = Path.home() / ".biocaching" / "session.json"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings()
