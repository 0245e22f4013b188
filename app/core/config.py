from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    # App Configuration
    APP_NAME: str = "TutorHub API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    ALLOWED_HOSTS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tutorhub.db")
    DATABASE_ECHO: bool = False

    # Authentication (tokens are issued elsewhere, only verified here)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key-here")
    ALGORITHM: str = "HS256"

    # Booking policy
    CANCELLATION_NOTICE_HOURS: float = 24
    RESCHEDULE_NOTICE_HOURS: float = 24
    ENFORCE_STUDENT_CANCELLATION_NOTICE: bool = True
    ENFORCE_TUTOR_CANCELLATION_NOTICE: bool = True
    ALLOW_EARLY_COMPLETION: bool = True
    MIN_BOOKING_DURATION_HOURS: float = 0.5
    MAX_BOOKING_DURATION_HOURS: float = 8

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Email
    FROM_EMAIL: str = "noreply@tutorhub.com"
    NOTIFICATIONS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()

# Update allowed hosts for production
if os.getenv("ENVIRONMENT") == "production":
    settings.ALLOWED_HOSTS.extend([
        "https://tutorhub.vercel.app"
    ])
