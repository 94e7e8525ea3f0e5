"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("APP_ENV", "dev").lower()


class Settings(BaseSettings):
    """Environment configuration for the escrow backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///rekber.db"
    SECRET_KEY: str = "change-me"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://rekberpay.com",
        "http://localhost:3000",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = False
    ALLOW_DB_CREATE_ALL: bool = False

    # --- Escrow ----------------------------------------------------------
    DEFAULT_CURRENCY: str = "IDR"
    ESCROW_DEFAULT_EXPIRY_DAYS: int = 7

    # --- Payment gateway (placeholder) -----------------------------------
    PAYMENT_GATEWAY_NAME: str = "mayar"
    PAYMENT_BASE_URL: str = "https://payment.rekberpay.com/pay"

    # --- Scheduler -------------------------------------------------------
    SCHEDULER_ENABLED: bool = False
    ESCROW_EXPIRY_INTERVAL_MINUTES: int = 60

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8"
    )

    @field_validator("DEFAULT_CURRENCY")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        """Currency codes are stored upper-case (ISO 4217)."""

        cleaned = value.strip().upper()
        if len(cleaned) != 3:
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter ISO code")
        return cleaned

    @field_validator("PAYMENT_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AppInfo(BaseModel):
    name: str = "rekber-escrow-backend"
    version: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


__all__ = [
    "ENV",
    "Settings",
    "AppInfo",
    "get_settings",
]
