"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, validation_alias="DB_MAX_OVERFLOW")
    db_command_timeout: float = Field(default=10.0, validation_alias="DB_COMMAND_TIMEOUT")

    # Redis - for catalog caching, password reset grants and rate limiting
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")
    redis_socket_timeout: float = Field(default=2.0, validation_alias="REDIS_SOCKET_TIMEOUT")

    # Tokens
    app_name: str = Field(default="learnhub", validation_alias="APP_NAME")
    jwt_secret: str = Field(default="", validation_alias="JWT_SECRET")
    access_token_expire_hours: int = Field(
        default=24, ge=1, validation_alias="ACCESS_TOKEN_EXPIRE_HOURS",
    )
    refresh_token_expire_hours: int = Field(
        default=168, ge=1, validation_alias="REFRESH_TOKEN_EXPIRE_HOURS",
    )
    password_reset_ttl_seconds: int = Field(
        default=3600, ge=60, validation_alias="PASSWORD_RESET_TTL_SECONDS",
    )
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, validation_alias="BCRYPT_ROUNDS")

    # Cache TTLs in seconds, per key namespace
    cache_ttl_course: int = Field(default=3600, validation_alias="CACHE_TTL_COURSE")
    cache_ttl_course_list: int = Field(default=1800, validation_alias="CACHE_TTL_COURSE_LIST")
    cache_ttl_featured: int = Field(default=3600, validation_alias="CACHE_TTL_FEATURED")
    cache_ttl_categories: int = Field(default=3600, validation_alias="CACHE_TTL_CATEGORIES")

    auth_rate_limit_per_minute: int = Field(
        default=100, ge=1, validation_alias="AUTH_RATE_LIMIT_PER_MINUTE",
    )

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def validate_token_settings(self) -> "Settings":
        """
        Reject configurations that would make the token lifecycle unsafe.

        An empty signing secret would let anyone mint access tokens, and a refresh
        token that dies before the access token it accompanies can never be used.
        """
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET must be set to a non-empty value.")
        if self.refresh_token_expire_hours <= self.access_token_expire_hours:
            raise ValueError(
                "REFRESH_TOKEN_EXPIRE_HOURS must be greater than "
                "ACCESS_TOKEN_EXPIRE_HOURS.",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite (pool options don't apply)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
