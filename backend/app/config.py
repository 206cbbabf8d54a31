from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    APP_NAME: str = "Taxroute API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./taxroute.db"

    # Classification
    DEFAULT_JURISDICTION: str = "AT"
    APPLY_FORCE_OVERRIDES: bool = True
    CHECK_ANOMALIES: bool = True
    REVIEW_ON_LEGAL_VIOLATION: bool = False

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
