"""
Shared configuration management for the AppData service core.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Cached AppFolder data is never kept longer than this.
APP_DATA_CACHE_TTL_SECONDS = 4 * 60 * 60


class AppDataConfig(BaseSettings):
    """Process-wide configuration, created once at startup and passed explicitly."""

    model_config = SettingsConfigDict(
        env_prefix="APPDATA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Cache
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Google OAuth 2.0 client
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_token_url: str = Field(default="https://oauth2.googleapis.com/token")
    google_verify_url: str = Field(default="https://www.googleapis.com/oauth2/v1/tokeninfo")
    google_certs_url: str = Field(default="https://www.googleapis.com/oauth2/v3/certs")
    google_issuers: List[str] = Field(
        default_factory=lambda: ["accounts.google.com", "https://accounts.google.com"]
    )
    jwks_refresh_interval: int = Field(default=3600)

    # Google service account
    service_account_email: str = Field(default="")
    service_account_key: str = Field(default="")

    # Google Drive
    drive_files_url: str = Field(default="https://www.googleapis.com/drive/v2/files")
    drive_upload_url: str = Field(default="https://www.googleapis.com/upload/drive/v2/files")
    drive_filename: str = Field(default="user_data.json")

    # Twitter application-only auth
    twitter_token_url: str = Field(default="https://api.twitter.com/oauth2/token")
    twitter_key: str = Field(default="")
    twitter_secret: str = Field(default="")


def get_config(**overrides) -> AppDataConfig:
    """Load configuration from the environment, applying explicit overrides."""
    return AppDataConfig(**overrides)
