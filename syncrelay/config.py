"""Application configuration loaded from environment variables."""

from __future__ import annotations

import functools
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Relay server settings.

    Every field has a default, so the server starts with no environment at
    all. ``PORT`` is the only value most deployments need to set.
    """

    host: str = "0.0.0.0"
    port: int = 3000
    leadership_mode: Literal["session", "global"] = "session"
    time_request_timeout: float = 5.0
    heartbeat_interval: float = 30.0
    cors_origins: str = "*"
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@functools.lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance (singleton)."""
    return Settings()
