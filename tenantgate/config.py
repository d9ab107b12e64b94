"""
Application Configuration

Centralized configuration management using Pydantic settings.
Loads from environment variables with fallback to .env file.
"""
from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Note: get_settings() is cached, so tests that need different values
    should build a Settings instance directly and hand it to create_app().
    """

    # Database settings
    DATABASE_URL: str = "postgresql://localhost/tenantgate_dev"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Token signing. Access and refresh tokens never share a secret.
    JWT_ACCESS_SECRET: str = Field("dev-access-secret-change-in-production", min_length=16)
    JWT_REFRESH_SECRET: str = Field("dev-refresh-secret-change-in-production", min_length=16)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Invites
    INVITE_TTL_HOURS: int = 168

    # bcrypt work factor (12 is the passlib default)
    BCRYPT_ROUNDS: int = 12

    # Refresh cookie. Only the refresh/logout endpoints ever see it.
    REFRESH_COOKIE_NAME: str = "refresh_token"
    REFRESH_COOKIE_PATH: str = "/api/v1/auth"

    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    # Host header allow-list; ["*"] leaves TrustedHostMiddleware off
    ALLOWED_HOSTS: List[str] = ["*"]

    # Redis for rate limiting
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_BURST: int = 10

    # Application settings
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cookie_secure(self) -> bool:
        # Plain http on localhost cannot carry secure cookies
        return self.is_production

    @property
    def cookie_samesite(self) -> str:
        # Production frontends live on a different origin than the API
        return "none" if self.is_production else "lax"

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only instantiate settings once.
    """
    return Settings()
