"""Configuration settings for the statement engine."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ledger backend API
    ledger_api_url: str = Field(
        default="http://localhost:8000", validation_alias="LEDGER_API_URL"
    )
    ledger_username: str = Field(..., validation_alias="LEDGER_USERNAME")
    ledger_password: SecretStr = Field(..., validation_alias="LEDGER_PASSWORD")
    ledger_timeout: float = Field(default=30.0, validation_alias="LEDGER_TIMEOUT")
    ledger_max_retries: int = Field(default=3, validation_alias="LEDGER_MAX_RETRIES")
    ledger_page_size: int = Field(default=500, validation_alias="LEDGER_PAGE_SIZE")

    # Statement behaviour
    statement_policy_path: Path | None = Field(
        default=None, validation_alias="STATEMENT_POLICY_PATH"
    )
    reclassify_loan_financed: bool = Field(
        default=False, validation_alias="RECLASSIFY_LOAN_FINANCED"
    )
    value_inventory_from_catalog: bool = Field(
        default=False, validation_alias="VALUE_INVENTORY_FROM_CATALOG"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
