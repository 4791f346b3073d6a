from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Brokerage Back Office"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://brokerage_user:brokerage_pass@db:5432/brokerage_db"
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # Redis (Celery broker)
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # Commission engine
    MAX_UPLINE_DEPTH: int = 10
    APPROVAL_LOCK_TIMEOUT_SECONDS: float = 10.0
    AUTO_OPEN_REVIEW_ON_APPROVE: bool = True

    # Frontend origin for CORS
    FRONTEND_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
