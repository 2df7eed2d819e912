from typing import Dict, List, Optional

from pydantic_settings import BaseSettings

DEFAULT_BUSINESS_HOURS = {
    "monday": {"start": "09:00", "end": "17:00"},
    "tuesday": {"start": "09:00", "end": "17:00"},
    "wednesday": {"start": "09:00", "end": "17:00"},
    "thursday": {"start": "09:00", "end": "17:00"},
    "friday": {"start": "09:00", "end": "15:00"},
    "saturday": None,
    "sunday": None,
}


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./clinic.db"
    SECRET_KEY: str = "your_secret_key"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    TIMEZONE: str = "Africa/Blantyre"
    SLOT_MINUTES: int = 30
    DEFAULT_DURATION_MINUTES: int = 30
    # weekday name -> {"start": "HH:MM", "end": "HH:MM"} or null when closed
    BUSINESS_HOURS: Dict[str, Optional[Dict[str, str]]] = DEFAULT_BUSINESS_HOURS

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
