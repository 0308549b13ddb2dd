# backend/app/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    # Shop
    shop_timezone: str = "America/Toronto"
    schedule_cache_ttl: float = 60.0

    # Email notifications (Resend)
    email_enabled: bool = False
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "onboarding@resend.dev"
    shop_name: str = "Fast Boys Garage"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )


settings = Settings()
