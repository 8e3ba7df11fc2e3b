"""Centralized settings management for the calendar pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import make_url

from econcal.configs.config import Config


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    at the project root.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # -------------------------------------------------------------------------
    # DATABASE (issue log)
    # -------------------------------------------------------------------------
    DATABASE_URL: str | None = None

    # -------------------------------------------------------------------------
    # SOURCES
    # -------------------------------------------------------------------------
    DEFAULT_TIMEZONE: str = "Europe/Kyiv"
    FOREXFACTORY_FEED: Literal["csv", "html"] = "csv"
    MYFXBOOK_FEED: Literal["rss", "html"] = "rss"

    # -------------------------------------------------------------------------
    # BROWSER
    # -------------------------------------------------------------------------
    BROWSER_HEADLESS: bool = True
    BROWSER_IDLE_CLOSE_S: float = Field(default=30 * 60, gt=0)
    BROWSER_IDLE_CHECK_S: float = Field(default=5 * 60, gt=0)
    BROWSER_STARTUP_TIMEOUT_S: float = Field(default=45.0, gt=0)

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # Source, quality and conflict settings read by the adapter factory
    INGESTION_CONFIG_PATH: Path = Config.INGESTION_CONFIG_PATH

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        # Allow extra fields in .env but ignore them in the model
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    def get_psycopg2_params(self) -> dict:
        """
        Parse DATABASE_URL into psycopg2-compatible connection parameters.

        Uses sqlalchemy.make_url for robust parsing of complex connection strings.

        Returns
        -------
        dict
            psycopg2 connection arguments (host, port, dbname, user, password).

        Raises
        ------
        ValueError
            When DATABASE_URL is not configured.
        """
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is not configured")
        url = make_url(self.DATABASE_URL)
        return {
            "host": url.host,
            "port": url.port,
            "dbname": url.database,
            "user": url.username,
            "password": url.password,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
