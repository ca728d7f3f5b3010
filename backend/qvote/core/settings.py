from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: str = Field(default="sqlite:///./qvote.db")
    vote_rate_limit: str = Field(default="5/minute")
    event_create_rate_limit: str = Field(default="10/hour")
    trusted_proxies: str = Field(default="*")
    jwt_secret: str = Field(default="your-secret-key")
    jwt_algorithm: str = Field(default="HS256")
    vote_log_file: str = Field(default="votes.log")
    credits_min: int = Field(default=1)
    credits_max: int = Field(default=1000)
    token_max_generate: int = Field(default=100)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _load_settings() -> Settings:
    return Settings(
        database_url=_env("DATABASE_URL", "sqlite:///./qvote.db"),
        vote_rate_limit=_env("VOTE_RATE_LIMIT", "5/minute"),
        event_create_rate_limit=_env("EVENT_CREATE_RATE_LIMIT", "10/hour"),
        trusted_proxies=_env("TRUSTED_PROXIES", "*"),
        jwt_secret=_env("JWT_SECRET", "your-secret-key"),
        jwt_algorithm=_env("JWT_ALGORITHM", "HS256"),
        vote_log_file=_env("VOTE_LOG_FILE", "votes.log"),
        credits_min=int(_env("CREDITS_MIN", "1")),
        credits_max=int(_env("CREDITS_MAX", "1000")),
        token_max_generate=int(_env("TOKEN_MAX_GENERATE", "100")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
