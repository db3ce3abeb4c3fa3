"""Pydantic Settings: loads configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "ignore"}

    api_key: str

    sites_file: str = "sites.json"
    user_agent: str = "listing-service/0.1.0"
    request_timeout: float = 15.0

    connectivity_probe_url: str = ""
    connectivity_interval: float = 30.0

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
