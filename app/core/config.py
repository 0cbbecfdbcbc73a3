"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables (.env file).
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Project Info
    PROJECT_NAME: str = "User Service"
    VERSION: str = "0.1.0"

    # Database
    DATABASE_DRIVER: str = "sqlite"
    DATABASE_DSN: str = "sqlite:///./users.db"
    DATABASE_LOG_MODE: bool = False

    # Requests
    REQUEST_TIMEOUT_SECONDS: Optional[float] = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def DATABASE_URL(self) -> str:
        return self.DATABASE_DSN


# Global settings instance
settings = Settings()
