"""
Configuration settings for the DocuGen backend.
Loads environment variables and provides application-wide settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Identity provider (Supabase Auth / GoTrue)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    AUTH_TIMEOUT: int = 15

    # Project store (the Supabase Postgres database)
    DATABASE_URL: str = ""

    # Gemini Configuration
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    GEMINI_TIMEOUT: int = 120

    # Redirects handed to the identity provider
    APP_URL: str = "http://localhost:5173"
    PASSWORD_RESET_REDIRECT: str = ""
    OAUTH_PROVIDER: str = "google"

    # Browser sessions idle longer than this many seconds are dropped (0 keeps them)
    SESSION_TTL: int = 3600

    # Export
    EXPORT_WATERMARK: str = "DocuGen AI Generated"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def identity_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)

    @property
    def store_configured(self) -> bool:
        return bool(self.DATABASE_URL)

    @property
    def generation_configured(self) -> bool:
        return bool(self.GEMINI_API_KEY)

    def password_reset_redirect(self) -> str:
        """Where the reset e-mail link lands; falls back to the app origin."""
        return self.PASSWORD_RESET_REDIRECT or self.APP_URL


# Global settings instance
settings = Settings()
