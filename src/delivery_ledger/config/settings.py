"""Configuration settings for the delivery ledger core."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Flat settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Hosted store (PostgREST-compatible REST endpoint)
    store_url: str = Field(
        default="http://localhost:54321", validation_alias="LEDGER_STORE_URL"
    )
    store_key: SecretStr = Field(..., validation_alias="LEDGER_STORE_KEY")
    store_timeout: float = Field(default=30.0, validation_alias="LEDGER_STORE_TIMEOUT")
    store_max_retries: int = Field(
        default=3, ge=0, validation_alias="LEDGER_STORE_MAX_RETRIES"
    )

    # Realtime change feed
    realtime_url: str = Field(
        default="ws://localhost:54321/realtime/v1/websocket",
        validation_alias="LEDGER_REALTIME_URL",
    )
    realtime_heartbeat_seconds: float = Field(
        default=30.0, validation_alias="LEDGER_REALTIME_HEARTBEAT"
    )

    # Billing
    price_per_liter: Decimal = Field(
        default=Decimal("100"), ge=0, validation_alias="PRICE_PER_LITER"
    )
    reconcile_concurrency: int = Field(
        default=1, ge=1, validation_alias="RECONCILE_CONCURRENCY"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> LedgerSettings:
    """Get cached settings instance."""
    return LedgerSettings()
