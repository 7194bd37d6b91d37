"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup — a malformed value fails fast with a clear error message.

Usage:
    from job_escrow.config import get_settings
    settings = get_settings()
    print(settings.database_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Job Escrow Ledger."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Ledger store (SQLAlchemy async URL) ---
    database_url: str = "sqlite+aiosqlite:///./job_escrow.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Platform roles ---
    # Arbiter and fee recipient fall back to the owner when left blank.
    platform_owner: str = "platform-owner"
    platform_arbiter: str = ""
    fee_recipient: str = ""

    # --- Escrow defaults ---
    default_fee_rate: int = 25  # thousandths (2.5%)
    escrow_account: str = "escrow"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def arbiter_identity(self) -> str:
        return self.platform_arbiter or self.platform_owner

    @property
    def fee_recipient_identity(self) -> str:
        return self.fee_recipient or self.platform_owner


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
