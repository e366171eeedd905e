"""
Configuration management for cartsync
"""

import threading
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cartsync.infrastructure.utilities.constants import (
    CacheSettings,
    FileSettings,
    PersistenceSettings,
    UpstreamSettings,
)


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Upstream store
    store_api_url: str = Field(
        default="http://localhost:8080/wp-json/wc/store/v1",
        description="Base URL of the Store API session cart",
    )
    rest_api_url: str = Field(
        default="http://localhost:8080/wp-json/wc/v3",
        description="Base URL of the REST API used for add-on definitions",
    )
    consumer_key: Optional[str] = Field(default=None, description="REST API consumer key")
    consumer_secret: Optional[str] = Field(default=None, description="REST API consumer secret")
    request_timeout_seconds: float = Field(
        default=UpstreamSettings.DEFAULT_TIMEOUT_SECONDS, gt=0, description="Upstream request timeout"
    )

    # Caching
    cart_cache_ttl_seconds: float = Field(
        default=CacheSettings.CART_CACHE_TTL_SECONDS, ge=0, description="Live cart view TTL"
    )
    catalog_cache_ttl_seconds: float = Field(
        default=CacheSettings.CATALOG_CACHE_TTL_SECONDS, ge=0, description="Catalog data TTL"
    )

    # Ledger persistence
    ledger_storage_backend: Literal["file", "sqlite", "memory"] = Field(
        default="file", description="Where the add-on ledger is persisted"
    )
    ledger_storage_dir: str = Field(
        default=FileSettings.DATA_DIRECTORY, description="Directory for the file backend"
    )
    ledger_database_url: str = Field(
        default=FileSettings.DEFAULT_DATABASE_URL, description="Database URL for the sqlite backend"
    )
    ledger_storage_key: str = Field(
        default=PersistenceSettings.STORAGE_KEY, min_length=1, description="Namespaced storage key"
    )
    ledger_storage_quota_bytes: Optional[int] = Field(
        default=PersistenceSettings.DEFAULT_QUOTA_BYTES,
        description="Largest document the file backend accepts (None disables the check)",
    )

    # Application settings
    currency: str = Field(default="USD", description="Currency code")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default=FileSettings.LOGS_DIRECTORY, description="Directory for log files")
    environment: str = Field(default="development", description="Application environment")

    # API server
    api_host: str = Field(default="127.0.0.1", description="Proxy bind address")
    api_port: int = Field(default=8000, gt=0, lt=65536, description="Proxy port")

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, value: str) -> str:
        if len(value) != 3 or not value.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return value.upper()

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("store_api_url", "rest_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_config() -> Settings:
    """Get the global settings instance, ensuring thread safety."""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings()
    return _settings_instance


def reset_config() -> None:
    """Drop the cached settings so the next get_config() re-reads the environment"""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None
