"""
Configuration management for Hotel Ops
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Hotel Ops"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./hotelops.db"

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12  # one shift

    # Seeded on first start when no admin supervisor exists
    DEFAULT_ADMIN_EMAIL: str = "admin@hotelops.local"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"
    DEFAULT_ADMIN_NAME: str = "Administrador"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Working orders / notes
    COMMENTS_PAGE_LIMIT: int = 20
    WORKING_ORDERS_MAX_PAGE_SIZE: int = 200
    NOTE_TITLE_MAX_LENGTH: int = 255

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
