from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "store"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 40
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    # Default placeholder keeps local/test runs working; real deployments
    # must override via env.
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Notifications
    COMMUNICATIONS_SERVICE_URL: str = "http://communications-service:8004"
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # Store rules
    ORDER_CODE_PREFIX: str = "FSH"
    ORDER_CODE_MAX_ATTEMPTS: int = 5
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("500000")
    FLAT_SHIPPING_FEE: Decimal = Decimal("30000")
    CART_MAX_ITEM_QUANTITY: int = 999

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


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
