"""
Configuration management for Ngantri
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Service
    api_port: int = Field(8000, description="Port the API listens on")
    log_level: str = Field("INFO")
    base_url: str = Field("http://localhost:3000", description="Public URL of the web front-end")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Database
    database_url: str = Field("sqlite:///./database/ngantri.db")

    # Admin credentials
    admin_username: str = Field("admin")
    admin_password: str = Field("admin123")
    admin_session_hours: int = Field(8)

    # Merchant passwords
    bcrypt_rounds: int = Field(12)

    # Xendit payment gateway
    xendit_api_key: str = Field("")
    xendit_webhook_token: str = Field("")
    xendit_base_url: str = Field("https://api.xendit.co")
    invoice_duration_seconds: int = Field(86400)

    @property
    def payment_success_url(self) -> str:
        return f"{self.base_url}/payment-success"

    @property
    def payment_failed_url(self) -> str:
        return f"{self.base_url}/payment-failed"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


# Global settings instance
settings = Settings()
