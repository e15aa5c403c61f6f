# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # Required - the app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_AVATAR_BUCKET: str = Field(
        default="avatars",
        description="Storage bucket for user avatar images"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (Celery broker, shared rate limit counters)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # OpenAI / Coach Configuration
    # -------------------------------------------------------------------------
    # An empty key is allowed: the coach then answers with fallback replies

    OPENAI_API_KEY: str = Field(
        default="",
        description="OpenAI API key for the coach agent"
    )

    OPENAI_MODEL: str = Field(
        default="gpt-4",
        description="Chat completion model used by the coach"
    )

    OPENAI_EMBEDDING_MODEL: str = Field(
        default="text-embedding-ada-002",
        description="Embedding model used for conversation similarity"
    )

    COACH_TEMPERATURE: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="OpenAI temperature for coach replies"
    )

    COACH_MAX_TOKENS: int = Field(
        default=800,
        ge=50,
        le=4000,
        description="Max tokens per coach reply"
    )

    COACH_CONTEXT_MESSAGES: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Recent conversation messages included in coach context"
    )

    SIMILARITY_THRESHOLD: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity for a past reply to count as relevant"
    )

    VECTOR_STORE_MAX_PER_USER: int = Field(
        default=1000,
        ge=10,
        description="Max embeddings kept in memory per user (oldest evicted)"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level when DEBUG is off"
    )

    LOG_FILE: str | None = Field(
        default=None,
        description="Optional path of a log file (in addition to stderr)"
    )

    APP_VERSION: str = Field(
        default="1.0.0",
        description="Version reported by the health endpoints"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------

    JWT_SECRET: str = Field(
        default="dev-secret-key-change-in-production",
        min_length=16,
        description="Secret key for signing access tokens"
    )

    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="Signing algorithm for access tokens"
    )

    JWT_EXPIRE_DAYS: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Access token lifetime in days"
    )

    BCRYPT_ROUNDS: int = Field(
        default=12,
        ge=4,
        le=16,
        description="bcrypt cost factor for password hashing"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    MAX_BODY_SIZE_MB: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum request body size in MB"
    )

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------
    # Rate strings use the `limits` notation, e.g. "100 per 15 minutes"

    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Turn request rate limiting on or off"
    )

    RATE_LIMIT_STORAGE_URL: str = Field(
        default="memory://",
        description="Counter storage for rate limits (memory:// or redis://...)"
    )

    TRUSTED_PROXY_COUNT: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Reverse proxies in front of the API; X-Forwarded-For is ignored when 0"
    )

    RATE_LIMIT_GENERAL: str = Field(
        default="100 per 15 minutes",
        description="Per-IP limit for all /api routes"
    )

    RATE_LIMIT_AUTH: str = Field(
        default="5 per 15 minutes",
        description="Per-IP limit for failed register/login attempts"
    )

    RATE_LIMIT_CHAT: str = Field(
        default="100 per 15 minutes",
        description="Per-IP limit for chat routes"
    )

    # -------------------------------------------------------------------------
    # Avatar Upload Settings
    # -------------------------------------------------------------------------

    MAX_AVATAR_SIZE_MB: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum avatar upload size in MB"
    )

    ALLOWED_AVATAR_TYPES: str = Field(
        default="image/jpeg,image/png,image/gif",
        description="Allowed avatar content types (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail on empty values (useful where env vars are set directly)
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def allowed_avatar_types_list(self) -> list[str]:
        """Parse ALLOWED_AVATAR_TYPES into a list of content types."""
        return [t.strip().lower() for t in self.ALLOWED_AVATAR_TYPES.split(",") if t.strip()]

    @property
    def max_avatar_size_bytes(self) -> int:
        """Convert MB to bytes for avatar size validation."""
        return self.MAX_AVATAR_SIZE_MB * 1024 * 1024

    @property
    def max_body_size_bytes(self) -> int:
        """Convert MB to bytes for request body validation."""
        return self.MAX_BODY_SIZE_MB * 1024 * 1024

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
