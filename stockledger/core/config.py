"""
Stock Ledger Configuration
Core settings for the inventory ledger and allocation engine
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    """Application settings"""

    # Application Info
    APP_NAME: str = "Stock Ledger API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./stockledger.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    SQLITE_BUSY_TIMEOUT: int = 30  # seconds

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Path("logs")
    LOG_FILE: str = "app.log"
    ERROR_LOG_FILE: str = "error.log"
    LOG_TO_FILE: bool = False

    # Precision
    CURRENCY_DECIMAL_PLACES: int = 2
    QUANTITY_DECIMAL_PLACES: int = 3
    COST_DECIMAL_PLACES: int = 4

    # Balance mutation retries (optimistic concurrency)
    MUTATION_MAX_ATTEMPTS: int = 5
    MUTATION_BACKOFF_BASE_SECONDS: float = 0.01
    MUTATION_BACKOFF_MAX_SECONDS: float = 0.5
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # Threshold monitoring
    EXPIRY_HORIZON_DAYS: int = 30

    # Allocation recovery
    RECOVERY_GRACE_SECONDS: int = 300
    RUN_RECOVERY_ON_STARTUP: bool = True

    # API Configuration
    API_V1_STR: str = "/api/v1"
    DOCS_URL: str = "/docs"
    REDOC_URL: str = "/redoc"
    OPENAPI_URL: str = "/openapi.json"

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case"""
        return v.upper()

    @field_validator("MUTATION_MAX_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MUTATION_MAX_ATTEMPTS must be at least 1")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
