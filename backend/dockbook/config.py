from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    APP_ENV: str = "dev"
    SECRET_KEY: str
    JWT_EXPIRES_MIN: int = 1440
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Europe/Prague"

    # DB
    DB_URL: str
    DB_POOL_SIZE: int = 5

    # Slots / bookings
    BOOKING_NUMBER_PREFIX: str = "BK"
    SLOT_CAPACITY_MAX: int = 100
    RECURRING_MAX_OCCURRENCES: int = 366

    # Rescheduler (delayed bookings -> next free slot)
    RESCHEDULER_ENABLED: bool = False
    RESCHEDULER_INTERVAL_MINUTES: int = 15

    # Gmail (may be None in dev: notifications are only logged then)
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REFRESH_TOKEN: str | None = None
    EMAIL_FROM: str | None = None
    EMAIL_FROM_NAME: str = "dockbook"
    EMAIL_SUBJECT_PREFIX: str = "[dockbook]"


settings = Settings()
