"""
Configuration settings for the chain index.

Uses Pydantic Settings to load environment variables for database connections,
backend selection, logging, pagination limits and cache sizes.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("chain_index", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(30_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    # Index backend
    backend: Literal["postgres", "memory"] = Field("postgres", alias="INDEX_BACKEND")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Pagination
    default_page_size: int = Field(25, alias="DEFAULT_PAGE_SIZE", gt=0)
    max_page_size: int = Field(1000, alias="MAX_PAGE_SIZE", gt=0)

    # Cache
    recent_ring_size: int = Field(200, alias="RECENT_RING_SIZE", ge=0)
    record_cache_size: int = Field(10_000, alias="RECORD_CACHE_SIZE", ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
