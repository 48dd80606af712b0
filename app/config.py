from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_TITLE: str = "Facility Booking Backend"
    DATABASE_URL: str = "sqlite:///./facility_booking.db"

    # ----- Auth / JWT -----
    SECRET_KEY: str = "CHANGE_THIS_SECRET_IN_REAL_PROJECT"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    LOG_LEVEL: str = "INFO"

    # Time zone the facility's slot times are expressed in
    BOOKING_TIMEZONE: str = "UTC"

    VENUE_CACHE_TTL_SECONDS: int = 300
    SEED_DEMO_DATA: bool = True

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "60/minute"

    STORE_BREAKER_FAIL_MAX: int = 3
    STORE_BREAKER_RESET_TIMEOUT: int = 60

    # ----- Reconciliation worker -----
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    RECONCILE_INTERVAL_MINUTES: int = Field(default=5, gt=0)

    @field_validator("BOOKING_TIMEZONE")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        v = v.strip()
        if v.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown time zone: {v!r}")
        return v


settings = Settings()
