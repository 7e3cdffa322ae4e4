# unimeet/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"
    APP_NAME: str = "UniMeet Scheduling Engine"
    LOG_LEVEL: str = "INFO"

    # DB URL – SQLite local by default, Postgres in deployments
    DATABASE_URL: str = "sqlite:///./unimeet.db"
    # How long a SQLite writer waits on the database lock before giving up
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 15.0

    # Booking flow
    HOLD_TTL_MINUTES: int = 5
    # Used when an institution row carries no approval mode of its own
    DEFAULT_APPROVAL_MODE: str = "MANUAL"

    # Bearer token expected by the /cron endpoints; unset disables them
    CRON_SECRET: Optional[str] = None

    # Twilio config (optional SMS alerts to representatives)
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None  # our Twilio sender ID

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
