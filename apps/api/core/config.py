"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
import tempfile
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=5050)

    # Identity service (Supabase Auth)
    SUPABASE_URL: Optional[str] = Field(default=None)
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(default=None)
    IDENTITY_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # LLM provider (OpenAI vector store + Responses API)
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    VECTOR_STORE_ID: Optional[str] = Field(default=None)
    OPENAI_MODEL: str = Field(default="gpt-4.1-mini")

    # Ingestion temp artifacts
    INGEST_TMP_DIR: str = Field(default_factory=tempfile.gettempdir)

    # Request body ceiling (bytes)
    MAX_BODY_BYTES: int = Field(default=1024 * 1024, gt=0)

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_BACKEND: str = Field(default="memory")  # memory or redis
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, gt=0)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=15 * 60, gt=0)

    # Redis Configuration (rate limit backend)
    REDIS_URL: str = Field(default="redis://localhost:6379/0")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)
    EXPOSE_API_DOCS: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins
    # e.g., "https://flick.app,https://www.flick.app"
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.1)

    def missing_provider_settings(self) -> List[str]:
        """Names of provider settings the relay cannot serve requests without."""
        required = (
            "SUPABASE_URL",
            "SUPABASE_SERVICE_ROLE_KEY",
            "OPENAI_API_KEY",
            "VECTOR_STORE_ID",
        )
        return [name for name in required if not getattr(self, name)]


# Global settings instance
settings = Settings()
