"""
Configuration settings for the token holder rank service.
Uses Pydantic Settings for type-safe environment variable loading.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # APP
    # ==========================================================================
    app_name: str = Field(default="Token Holder Rank API")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # ==========================================================================
    # HOLDER LIST API (SocialScan developer API)
    # ==========================================================================
    holders_api_base_url: str = Field(
        default="https://api.socialscan.io/monad-testnet/v1/developer/api",
        description="Token holder list endpoint"
    )
    contract_address: str = Field(
        default="0x93C33B999230eE117863a82889Fdb342cd6D5C64",
        description="Token contract whose holders are ranked"
    )
    holders_api_key: str = Field(default="", description="Developer API key")
    api_timeout_seconds: int = Field(default=30, ge=1, le=300)

    # ==========================================================================
    # INGESTION
    # ==========================================================================
    page_size: int = Field(default=100, ge=10, le=1000, description="Holders per page")
    page_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=10.0,
        description="Pause between successful page fetches (upstream rate limit)"
    )
    publish_every_pages: int = Field(
        default=10,
        ge=1,
        description="Publish a partial, re-sorted snapshot every N pages"
    )
    expected_pages: int = Field(
        default=200,
        ge=1,
        description="Assumed upper bound of pages, used only for the progress estimate"
    )
    dedupe_strategy: Literal["none", "first", "max"] = Field(
        default="none",
        description="Duplicate address handling: keep all, keep first, or keep largest"
    )

    # ==========================================================================
    # SCHEDULING & PERSISTENCE
    # ==========================================================================
    refresh_interval_hours: float = Field(default=6.0, gt=0, le=168)
    backup_path: str = Field(default="all_tokenholders.json")

    # ==========================================================================
    # LOGGING
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")

    @property
    def refresh_interval_seconds(self) -> float:
        return self.refresh_interval_hours * 3600


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
