# app/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal

class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = False

    # Security
    SECRET_KEY: str
    ALGORITHM: Literal["HS256", "HS384", "HS512"] = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE_SEC: int = 1800

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    MOVEMENT_RATE_LIMIT: str = "60/minute"

    # Frontend
    CORS_ORIGINS: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

    # Ledger policy
    OVERDRAW_POLICY: Literal["clamp", "reject"] = "clamp"
    REQUIRE_STOCK_IN_REFERENCE: bool = False
    MIN_REASON_WORDS: int = 0

    # Item defaults
    DEFAULT_MIN_STOCK_LEVEL: int = 10
    DEFAULT_REORDER_POINT: int = 5
    DEFAULT_REORDER_QUANTITY: int = 20

    # Invoice storage
    STORAGE_BACKEND: Literal["local", "http"] = "local"
    STORAGE_URL: str | None = None
    STORAGE_API_KEY: str | None = None
    STORAGE_BUCKET: str = "inventory-docs"
    LOCAL_STORAGE_DIR: str = "uploads"



    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
    )


settings = Settings()
