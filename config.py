from __future__ import annotations

import os
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, model_validator
from typing import Optional


BASE_DIR = Path(__file__).parent.resolve()

class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    base_dir: Path = BASE_DIR
    db_path: Path = Field(
        default=BASE_DIR / "data" / "notes.db",
        validation_alias=AliasChoices('db_path', 'DATABASE_PATH')
    )
    uploads_dir: Path = Field(
        default=BASE_DIR / "data" / "uploads",
        validation_alias=AliasChoices('uploads_dir', 'UPLOADS_DIR')
    )
    logs_dir: Path = Field(
        default=BASE_DIR / "logs",
        validation_alias=AliasChoices('logs_dir', 'LOGS_DIR')
    )
    # Pre-SQLite JSON export, imported once into an empty database
    legacy_notes_path: Path = Field(
        default=BASE_DIR / "data" / "notes.json",
        validation_alias=AliasChoices('legacy_notes_path', 'LEGACY_NOTES_PATH')
    )
    legacy_admin_username: str = "admin"
    legacy_admin_password: str = Field(
        default="admin123",
        validation_alias=AliasChoices('legacy_admin_password', 'LEGACY_ADMIN_PASSWORD')
    )
    # Maximum size (in bytes) for an uploaded image
    max_file_size: int = 20 * 1024 * 1024  # 20MB default

    # Security settings
    secret_key: str = Field(
        default="generate-secure-key-in-production",
        validation_alias=AliasChoices('secret_key', 'SECRET_KEY', 'JWT_SECRET')
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60

    environment: str = Field(
        default="development",
        validation_alias=AliasChoices('environment', 'ENVIRONMENT', 'ENV')
    )

    # CORS configuration
    cors_origins: str = Field(
        default="*",
        validation_alias=AliasChoices('cors_origins', 'CORS_ORIGINS')
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() in ('production', 'prod')

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.cors_origins.split(',') if origin.strip()]

    # === AI PROVIDERS ===
    # Primary: any OpenAI-compatible chat completions endpoint
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('openai_api_key', 'OPENAI_API_KEY')
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias=AliasChoices('openai_base_url', 'OPENAI_BASE_URL')
    )
    openai_model: str = Field(
        default="deepseek-ai/DeepSeek-V3",
        validation_alias=AliasChoices('openai_model', 'OPENAI_MODEL')
    )
    # Fallback: Google Gemini through the google-genai SDK
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('gemini_api_key', 'GEMINI_API_KEY')
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        validation_alias=AliasChoices('gemini_model', 'GEMINI_MODEL')
    )
    ai_temperature: float = 0.7
    ai_timeout_seconds: int = Field(
        default=60,
        validation_alias=AliasChoices('ai_timeout_seconds', 'AI_TIMEOUT_SECONDS')
    )

    @property
    def ai_log_path(self) -> Path:
        return self.logs_dir / "ai.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"   # prevents crashes if other stray keys exist
    )

    @model_validator(mode='after')
    def generate_secure_keys(self) -> 'Settings':
        """Generate a signing key if the default is still being used."""
        if self.secret_key == "generate-secure-key-in-production":
            self.secret_key = os.urandom(32).hex()
            print("Generated random SECRET_KEY. Set SECRET_KEY env var for production!")

        return self

settings = Settings()

def get_settings() -> Settings:
    """Get application settings instance"""
    return settings
