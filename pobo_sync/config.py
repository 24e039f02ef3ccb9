"""Environment-driven settings for pobo_sync."""

from __future__ import annotations

from pydantic_settings import BaseSettings

from pobo_sync.exceptions import ConfigError


class Settings(BaseSettings):
    """Credentials and client tuning, read from ``POBO_*`` env vars or ``.env``."""

    api_token: str = ""
    webhook_secret: str = ""
    base_url: str = "https://api.pobo.space"
    timeout: float = 30.0
    per_page: int = 100

    log_level: str = "INFO"
    log_file: str = ""

    model_config = {"env_prefix": "POBO_", "env_file": ".env", "extra": "ignore"}

    def require(self, *names: str) -> Settings:
        """Raise ConfigError listing every named setting that is empty."""
        missing = [f"POBO_{name.upper()}" for name in names if not getattr(self, name)]
        if missing:
            raise ConfigError(missing)
        return self


def load_settings(*required: str, **overrides) -> Settings:
    """Build Settings from the environment and fail fast on missing credentials."""
    return Settings(**overrides).require(*required)
