"""Configuration management for the URL shortener service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram: get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Import**::
    from shortener.config import get_settings

**Step 2: Get settings**::
    settings = get_settings()
    db_url = settings.database_url

**Step 3: Override in tests**::
    settings = Settings(DATABASE_URL="sqlite+aiosqlite:///test.db", SHORT_CODE_LENGTH=8)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- ``DATABASE_URL`` / ``REDIS_URL`` win over the discrete host/port variables
  when both are present.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shortener.codegen import MAX_DETERMINISTIC_LENGTH
from shortener.enums import CodeStrategy

# Width of the short_code column.
MAX_SHORT_CODE_LENGTH = 20


class Settings(BaseSettings):
    APP_NAME: str = "url-shortener"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    BASE_URL: str = "http://localhost:8000"

    # PostgreSQL (DATABASE_URL takes precedence when set)
    DATABASE_URL: str | None = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "urlshortener"
    POSTGRES_PASSWORD: str = "urlshortener"
    POSTGRES_DB: str = "urlshortener"

    # Connection pool limits
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: float = 5.0
    DB_CONNECT_TIMEOUT: float = 2.0
    DB_COMMAND_TIMEOUT: float = 5.0

    # Redis (REDIS_URL takes precedence when set)
    REDIS_URL: str | None = None
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None
    REDIS_DB: int = 0
    REDIS_TTL: int = 3600
    REDIS_SOCKET_TIMEOUT: float = 0.5

    # Short code generation
    SHORT_CODE_LENGTH: int = Field(6, ge=1, le=MAX_SHORT_CODE_LENGTH)
    CODE_STRATEGY: CodeStrategy = CodeStrategy.RANDOM
    MAX_CODE_ATTEMPTS: int = Field(5, ge=1)
    SEQUENCE_KEY: str = "id_allocator:url"
    DEDUPLICATE_URLS: bool = True

    # Stats
    RECENT_CLICKS_LIMIT: int = 10

    # Click accounting worker
    CLICK_QUEUE_MAXSIZE: int = 10000
    CLICK_DRAIN_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("CODE_STRATEGY", mode="before")
    @classmethod
    def parse_code_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return CodeStrategy.from_str(value.strip().lower())
        return value

    @model_validator(mode="after")
    def check_hash_length(self) -> "Settings":
        if self.CODE_STRATEGY == CodeStrategy.HASH and self.SHORT_CODE_LENGTH > MAX_DETERMINISTIC_LENGTH:
            raise ValueError(
                f"SHORT_CODE_LENGTH must be at most {MAX_DETERMINISTIC_LENGTH} with the hash strategy"
            )
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def short_url(self, short_code: str) -> str:
        return f"{self.BASE_URL.rstrip('/')}/{short_code}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
