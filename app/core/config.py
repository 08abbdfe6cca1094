import os
from typing import Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from urllib.parse import quote_plus

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    # --- APP INFO ---
    PROJECT_NAME: str = "Cargo Parcel Tracker"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # --- DATABASE ---
    # DATABASE_URL wins when set (e.g. "sqlite+aiosqlite:///./cargo_tracker.db")
    DATABASE_URL: Optional[str] = None
    DATABASE_ECHO: bool = False
    POSTGRES_USER: str = os.getenv("DB_USER", "cargo")
    POSTGRES_PASSWORD: str = os.getenv("DB_PASSWORD", "cargo@123")
    POSTGRES_SERVER: str = os.getenv("DB_HOST", "localhost")
    POSTGRES_PORT: str = os.getenv("DB_PORT", "5432")
    POSTGRES_DB: str = os.getenv("DB_NAME", "cargo_tracker")
    SEED_DEMO_DATA: bool = False

    # --- CACHE ---
    CACHE_DEFAULT_TTL_SECONDS: int = 600
    CACHE_SLIDING_EXPIRATION_SECONDS: int = 120
    REDIS_URL: Optional[str] = None

    # --- BACKGROUND JOBS ---
    PARCEL_EXPIRATION_ENABLED: bool = True
    PARCEL_EXPIRATION_INTERVAL_SECONDS: int = 300

    # --- NOTIFICATIONS ---
    NOTIFICATION_QUEUE_SIZE: int = 100

    # --- CORS ---
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """
        Constructs the async connection string.
        The password is encoded to handle special characters like '@'.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        encoded_password = quote_plus(self.POSTGRES_PASSWORD)

        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{encoded_password}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        case_sensitive = True

settings = Settings()
