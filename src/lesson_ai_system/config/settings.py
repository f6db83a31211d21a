"""Settings configuration"""
import json
from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from the environment"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False,
        validate_assignment=True, populate_by_name=True
    )

    # Application
    app_name: str = Field(default="Lesson AI System", validation_alias="APP_NAME")
    version: str = "1.0.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")
    api_prefix: str = Field(default="/api", validation_alias="API_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT", ge=1, le=65535)
    reload: bool = Field(default=False, validation_alias="RELOAD")

    # API Keys
    openai_api_key: Optional[SecretStr] = Field(default=None, validation_alias="OPENAI_API_KEY")
    gemini_api_key: Optional[SecretStr] = Field(default=None, validation_alias="GEMINI_API_KEY")
    anthropic_api_key: Optional[SecretStr] = Field(default=None, validation_alias="ANTHROPIC_API_KEY")
    openrouter_api_key: Optional[SecretStr] = Field(default=None, validation_alias="OPENROUTER_API_KEY")
    groq_api_key: Optional[SecretStr] = Field(default=None, validation_alias="GROQ_API_KEY")

    # Model routing
    default_model: str = Field(default="gpt-3.5-turbo", validation_alias="DEFAULT_MODEL")
    light_model: str = Field(default="gpt-3.5-turbo", validation_alias="LIGHT_MODEL")
    advanced_model: str = Field(default="gpt-4-turbo-preview", validation_alias="ADVANCED_MODEL")
    multimodal_model: str = Field(default="gemini-1.5-flash", validation_alias="MULTIMODAL_MODEL")
    reviewer_model: str = Field(default="claude-3-haiku-20240307", validation_alias="REVIEWER_MODEL")
    enable_fallback: bool = Field(default=True, validation_alias="ENABLE_FALLBACK")
    use_mock_providers: bool = Field(default=False, validation_alias="USE_MOCK_PROVIDERS")

    # Provider call policy
    ai_max_retries: int = Field(default=3, validation_alias="AI_MAX_RETRIES", ge=1)
    ai_timeout_ms: int = Field(default=30000, validation_alias="AI_TIMEOUT_MS", ge=1)
    ai_temperature: float = Field(default=0.7, validation_alias="AI_TEMPERATURE", ge=0, le=2)

    # Cache
    cache_enabled: bool = Field(default=True, validation_alias="CACHE_ENABLED")
    cache_backend: str = Field(default="memory", validation_alias="CACHE_BACKEND")
    cache_ttl_seconds: int = Field(default=3600, validation_alias="CACHE_TTL_SECONDS", ge=1)
    cache_key_prefix: str = Field(default="ai_cache:", validation_alias="CACHE_KEY_PREFIX")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_max_connections: int = Field(default=50, validation_alias="REDIS_MAX_CONNECTIONS")

    # Database
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Chat brokering
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", validation_alias="OPENROUTER_BASE_URL"
    )
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1", validation_alias="GROQ_BASE_URL"
    )
    groq_model: str = Field(default="mixtral-8x7b-32768", validation_alias="GROQ_MODEL")
    chat_timeout_seconds: int = Field(default=90, validation_alias="CHAT_TIMEOUT_SECONDS", ge=1)
    chat_max_tokens: int = Field(default=1024, validation_alias="CHAT_MAX_TOKENS", ge=1)
    site_url: str = Field(default="http://localhost:3000", validation_alias="SITE_URL")
    site_name: str = Field(default="Lesson AI", validation_alias="SITE_NAME")

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    rate_limit_requests: int = Field(default=100, validation_alias="RATE_LIMIT_REQUESTS")

    # Security
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://localhost:8000"], validation_alias="CORS_ORIGINS"
    )
    cors_allow_credentials: bool = Field(default=True, validation_alias="CORS_ALLOW_CREDENTIALS")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            # Handle JSON array format
            if v.startswith("["):
                try:
                    return json.loads(v)
                except (json.JSONDecodeError, ValueError):
                    pass
            # Handle comma-separated format
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("cache_backend")
    @classmethod
    def check_cache_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError("CACHE_BACKEND must be 'memory' or 'redis'")
        return v

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return v

    # Properties
    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def has_openai_key(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_gemini_key(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def has_reviewer_key(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def has_openrouter_key(self) -> bool:
        return bool(self.openrouter_api_key)

    @property
    def has_groq_key(self) -> bool:
        return bool(self.groq_api_key)

    @property
    def ai_timeout_seconds(self) -> float:
        return self.ai_timeout_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
