import os
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    cache_backend: Literal["memory", "redis", "none"] = Field("memory", alias="DEVSTATS_CACHE_BACKEND")
    redis_url: str = Field("redis://localhost:6379/0", alias="DEVSTATS_REDIS_URL")
    cache_ttl: int = Field(300, alias="DEVSTATS_CACHE_TTL")
    http_timeout: float = Field(10.0, alias="DEVSTATS_HTTP_TIMEOUT")
    github_token: Optional[str] = Field(None, alias="DEVSTATS_GITHUB_TOKEN")
    leetcode_stats_api: str = Field(
        "https://leetcode-stats-api.herokuapp.com",
        alias="DEVSTATS_LEETCODE_STATS_API",
    )
    rate_limit: int = Field(30, alias="DEVSTATS_RATE_LIMIT")
    rate_period: int = Field(60, alias="DEVSTATS_RATE_PERIOD")
    cors_origins: List[str] = Field(["*"], alias="DEVSTATS_CORS_ORIGINS")
    log_level: str = Field("INFO", alias="DEVSTATS_LOG_LEVEL")
    debug_http: bool = Field(False, alias="DEVSTATS_DEBUG_HTTP")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid devstats configuration: {exc}") from exc
