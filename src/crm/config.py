"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Hosted backend (data API + auth API)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_ANON_KEY: str = ""

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # Pipeline defaults
    DEFAULT_PIPELINE_ID: str = "00000000-0000-0000-0000-000000000001"
    DEFAULT_CURRENCY: str = "USD"

    # Backend call timeouts (seconds)
    BACKEND_TIMEOUT_READ: float = 10.0
    BACKEND_TIMEOUT_MUTATE: float = 30.0

    # Sign-up: wait for the backend trigger to create the profile row
    PROFILE_TRIGGER_DELAY_SECONDS: float = 0.5

    @property
    def rest_url(self) -> str:
        """Base URL of the data API."""
        return f"{self.SUPABASE_URL.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        """Base URL of the auth API."""
        return f"{self.SUPABASE_URL.rstrip('/')}/auth/v1"

    @property
    def cors_origins(self) -> list[str]:
        """CORS_ALLOWED_ORIGINS split on commas ("*" allows any origin)."""
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
