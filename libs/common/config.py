from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"
    CORS_ORIGINS: List[str] | str = []

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Tokens and sessions
    # The placeholder keeps local/test runs working; real deployments override via env.
    JWT_SECRET_KEY: str = "local-dev-secret-key-change-me-0123456789"
    JWT_ISSUER: str = "ShoeStoreAPI"
    JWT_AUDIENCE: str = "ShoeStoreClient"
    JWT_EXPIRY_MINUTES: int = 60
    SESSION_COOKIE_NAME: str = "store_session"
    SESSION_EXPIRY_DAYS: int = 7

    # Orders
    DELIVERY_LEAD_DAYS: int = 7

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    LOGIN_RATE_LIMIT: str = "5/minute"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def check_secret_length(cls, v: str) -> str:
        if len(v.encode("utf-8")) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 bytes")
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_cors_csv(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
