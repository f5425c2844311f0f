"""
Application configuration using environment variables.
"""
import os
import secrets
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Crosspost API"
    debug: bool = False
    environment: str = "development"

    # Security
    secret_key: str = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60  # 1 hour
    refresh_token_expire_days: int = 7

    # Identities that always resolve to super_admin, whatever role is stored
    bootstrap_admin_emails: List[str] = []

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./crosspost.db")

    # Upload-Post aggregation service
    upload_post_api_url: str = "https://api.upload-post.com/api"
    upload_post_api_key: Optional[str] = None
    upload_post_timeout: float = 30.0  # seconds
    default_post_title: str = "Shared via Crosspost"
    optimistic_publish: bool = True
    connect_redirect_path: str = "/social/connections"
    connect_platforms: List[str] = [
        "linkedin",
        "instagram",
        "facebook",
        "x",
        "tiktok",
        "youtube",
        "threads",
        "pinterest",
        "bluesky",
    ]

    # CORS
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Rate limiting
    login_rate_limit: str = "5/minute"
    publish_rate_limit: str = "10/minute"
    sync_rate_limit: str = "10/minute"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Validate secret key on startup
settings = get_settings()
if settings.environment == "production" and not os.getenv("SECRET_KEY"):
    raise ValueError(
        "SECRET_KEY must be set in production! "
        "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )
