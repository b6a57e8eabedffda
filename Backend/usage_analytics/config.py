"""Application settings loaded from the environment (and `.env`)."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration. Field names map to upper-case env vars."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Usage Analytics API"

    database_url: str = "sqlite:///./usage_analytics.db"

    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    api_key_hash_secret: str = ""
    api_key_prefix_length: int = 12

    rate_limit_per_window: int = 100
    rate_limit_window_seconds: int = 60
    rate_limit_shards: int = 16

    usage_recorder_workers: int = 2
    usage_recorder_max_pending: int = 1000

    cors_origins: str = "*"
    log_level: str = "INFO"

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
