"""Centralized settings for the AI gateway.

Uses pydantic-settings to load from environment variables (prefixed AIGW_)
with defaults suitable for local development.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """AI gateway settings loaded from environment variables."""

    # --- Database ---
    database_url: str = "sqlite+aiosqlite:///./ai_gateway.db"
    database_echo: bool = False

    # --- Credential encryption ---
    # Master secret for provider credentials; must be >= 32 characters.
    encryption_key: str = ""
    pbkdf2_iterations: int = 100_000
    allow_legacy_ciphertext: bool = False

    # --- Provider calls ---
    retry_backoff_seconds: float = 0.5
    max_retry_backoff_seconds: float = 8.0

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "ai-gateway"

    model_config = {
        "env_prefix": "AIGW_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
