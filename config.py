"""
Application settings

Values come from the environment (or a local .env file). The admin password
may be given either as a precomputed hash or in plain text for local demos.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    app_name: str = "Portfolio API"
    environment: str = Field(default="production", description="development or production")
    cors_origins: List[str] = ["*"]

    # Database (hosted backend)
    database_url: Optional[str] = None
    database_name: str = "portfolio"

    # Auth
    jwt_secret: str = "super-secret-key-change"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12
    admin_email: str = "admin@portfolio.dev"
    admin_password: str = "admin123"
    admin_password_hash: Optional[str] = None
    admin_user_id: str = "admin"
    session_cookie_name: str = "admin_session"

    # Contact email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_secure: bool = False
    smtp_from: Optional[str] = None
    smtp_to: Optional[str] = None
    smtp_timeout: float = 10.0
    contact_max_requests: int = 3
    contact_window_seconds: int = 60 * 60

    # Uploads
    upload_dir: str = "uploads"
    public_base_url: str = "http://localhost:8000/uploads"
    max_upload_bytes: int = 50 * 1024 * 1024

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def backend_configured(self) -> bool:
        return bool(self.database_url)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@lru_cache
def get_settings() -> Settings:
    return Settings()
