"""
Configuration management for the sales document engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Salesflow Document Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./salesflow.db"

    # Cache
    CACHE_TTL_SECONDS: int = 300

    # Document numbering
    NUMBER_RETRY_ATTEMPTS: int = 5
    NUMBER_RETRY_MAX_DELAY_MS: int = 50
    NUMBER_PADDING: int = 5

    # Document chain
    CHAIN_MAX_DEPTH: int = 10

    # Document defaults
    DEFAULT_CURRENCY: str = "EUR"
    DEFAULT_PAYMENT_TERMS_DAYS: int = 30
    DEFAULT_UNIT: str = "pcs"

    # Development
    SEED_DEMO_DATA: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
