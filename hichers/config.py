"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    debug: bool = False
    secret_key: str = "change-me-in-production"

    # Session cookie (holds the Hichers token + user id)
    session_secret: str = ""
    session_cookie: str = "hichers_session"

    # Database (local newsletter/contact store)
    database_url: str = "sqlite+aiosqlite:///./storage/hichers.db"

    # Remote Hichers API
    api_base_url: str = "https://hichers-api-eight.vercel.app/api/v1"
    request_timeout: float = 15.0
    scheme_create_timeout: float = 45.0

    # Offers
    offer_lead_minutes: int = 20

    # OTP login
    default_country_code: str = "+44"
    otp_validate_attempts: int = 3
    otp_retry_delay: float = 1.0

    # Paths
    @property
    def base_dir(self) -> Path:
        return Path(__file__).parent.parent

    @property
    def storage_dir(self) -> Path:
        return self.base_dir / "storage"

    @property
    def cookie_secret(self) -> str:
        """Secret used to sign the session cookie."""
        return self.session_secret or self.secret_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
