"""Pydantic Settings — loads configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "ignore"}

    api_key: str = ""

    redis_url: str = "redis://localhost:6379"
    storage_prefix: str = "pipescrape:"
    allowed_callback_hosts: str = ""

    default_scenario: str = "static-content"
    plugin_modules: list[str] = []

    browser_headless: bool = True
    browser_timeout_ms: int = 30000

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
