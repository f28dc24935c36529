# backend/fincatch/config.py
"""
Engine configuration using Pydantic Settings.

Loads configuration from environment variables (prefix ``FINCATCH_``) with
validation:
- FINCATCH_LOG_LEVEL / FINCATCH_LOG_FORMAT: Logging setup
- FINCATCH_MAX_CONCURRENT_REQUESTS: Cap on in-flight provider/FX calls
- FINCATCH_CACHE_*: Opt-in price/FX cache

Configuration is validated when the module is imported. Invalid configuration
raises a pydantic ValidationError with a descriptive message.

Usage:
    from fincatch.config import settings

    if settings.cache_enabled:
        ...
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Single .env at the project root (parent of backend/)
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Environment variables:
        - FINCATCH_LOG_LEVEL: Logging level (default: "INFO")
        - FINCATCH_LOG_FORMAT: "text" or "json" (default: "text")
        - FINCATCH_DEFAULT_CURRENCY: Currency assumed for entries without one

    Concurrency (optional, with sensible defaults):
        - FINCATCH_MAX_CONCURRENT_REQUESTS: In-flight lookups per calculation (default: 8)

    Caching (opt-in):
        - FINCATCH_CACHE_ENABLED: Wrap providers/FX in TTL caches (default: False)
        - FINCATCH_PRICE_CACHE_TTL_SECONDS / FINCATCH_FX_CACHE_TTL_SECONDS
        - FINCATCH_CACHE_MAX_SIZE
    """

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency assumed for entries that do not state one"
    )

    # =========================================================================
    # CONCURRENCY
    # =========================================================================
    max_concurrent_requests: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum in-flight price/FX lookups per engine call"
    )

    # =========================================================================
    # CACHING
    # =========================================================================
    cache_enabled: bool = Field(
        default=False,
        description="Wrap market data and FX lookups in short-lived caches"
    )
    price_cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Lifetime of a cached price response"
    )
    fx_cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Lifetime of a cached exchange rate"
    )
    cache_max_size: int = Field(
        default=10_000,
        ge=1,
        description="Maximum entries kept by each cache"
    )

    # =========================================================================
    # MARKET DATA PROVIDERS
    # =========================================================================
    provider_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for market data providers"
    )
    provider_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient provider failures"
    )
    sjc_base_url: str = Field(
        default="https://sjc.com.vn",
        description="Base URL of the SJC gold price service"
    )

    model_config = SettingsConfigDict(
        env_prefix="FINCATCH_",
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.strip().upper()


# Create single instance
settings = Settings()
