# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal



class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: Literal["dev", "test", "staging", "prod"] = "dev"

    # -----------------------
    # Storage
    # -----------------------
    STORE_BACKEND: Literal["memory", "postgres"] = "memory"
    DATABASE_URL: str = Field(default="")
    DB_POOL_MAX: int = Field(default=10, ge=1)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100)
    DB_LOCK_TIMEOUT_MS: int = Field(default=3000, ge=100)

    # -----------------------
    # Tontine rules
    # -----------------------
    # All deadlines are evaluated in this zone (GMT+1, no DST)
    TIMEZONE: str = "Africa/Tunis"
    DEFAULT_CURRENCY: str = "TND"
    MIN_MEMBERS: int = Field(default=2, ge=2)
    MAX_MEMBERS: int = Field(default=50, ge=2)
    INVITE_TTL_DAYS: int = Field(default=7, ge=1)
    INVITE_MAX_USES: int = Field(default=10, ge=1)

    # -----------------------
    # Workers
    # -----------------------
    LATE_PAYMENTS_INTERVAL_SECONDS: int = Field(default=3600, ge=1)

    LOG_LEVEL: str = "INFO"
    APP_VERSION: str = "1.0.0"



settings = Settings()


def validate_env_settings() -> None:
    """
    Fail fast on staging/prod misconfiguration. Dev and test run on whatever is set.
    """
    if settings.ENV not in {"staging", "prod"}:
        return

    missing: list[str] = []
    if settings.STORE_BACKEND == "postgres" and not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if settings.STORE_BACKEND != "postgres":
        missing.append("STORE_BACKEND=postgres")
    if settings.MAX_MEMBERS < settings.MIN_MEMBERS:
        missing.append("MAX_MEMBERS>=MIN_MEMBERS")

    if missing:
        raise RuntimeError(f"Invalid {settings.ENV} configuration: " + ", ".join(missing))
