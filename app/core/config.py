# app/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime and cover:
    - DB connection
    - Booking business rules
    - Waitlist / reminder maintenance loop
    - Notification (SMTP) and calendar sync collaborators
    - Internal API key
    """

    APP_NAME: str = "Room Scheduler"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level for the service.")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./room_scheduler.db",
        description="SQLAlchemy-compatible database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Booking business rules ---
    MIN_DURATION_MINUTES: int = Field(default=15, description="Shortest bookable slot.")
    MAX_DURATION_HOURS: int = Field(default=8, description="Longest bookable slot.")
    MAX_ADVANCE_BOOKING_DAYS: int = Field(
        default=90,
        description="How far into the future a booking may start.",
    )
    MIN_LEAD_TIME_MINUTES: int = Field(
        default=5,
        description="New bookings must start at least this many minutes from now.",
    )
    BUSINESS_HOURS_START: int = Field(default=7, ge=0, le=23, description="Opening hour (local).")
    BUSINESS_HOURS_END: int = Field(default=21, ge=1, le=23, description="Closing hour (local).")
    BUSINESS_TIMEZONE: str = Field(
        default="UTC",
        description="IANA timezone in which business hours are evaluated.",
    )
    MAX_ATTENDEES: int = Field(default=50)
    MAX_TITLE_LENGTH: int = Field(default=200)
    MIN_TITLE_LENGTH: int = Field(default=3)
    MAX_DESCRIPTION_LENGTH: int = Field(default=2000)

    RECURRENCE_MAX_OCCURRENCES: int = Field(
        default=52,
        description="Ceiling on generated occurrences per recurring booking (one year weekly).",
    )

    CHECKIN_WINDOW_MINUTES: int = Field(
        default=15,
        description="How long before a booking starts check-in opens.",
    )

    # --- Background maintenance (waitlist sweep + reminders) ---
    MAINTENANCE_INTERVAL_SECONDS: int = Field(
        default=0,
        description="Period of the in-process maintenance loop. 0 disables it.",
    )
    MAINTENANCE_RETRY_ATTEMPTS: int = Field(default=3)
    MAINTENANCE_RETRY_DELAY_SECONDS: float = Field(default=0.5)

    # --- SMTP / Email configuration ---
    SMTP_HOST: str | None = Field(
        default=None,
        description="SMTP server hostname for sending notification emails.",
    )
    SMTP_PORT: int = Field(
        default=587,
        description="SMTP server port (usually 587 for TLS).",
    )
    SMTP_USERNAME: str | None = Field(default=None)
    SMTP_PASSWORD: str | None = Field(default=None)
    SMTP_USE_TLS: bool = Field(
        default=True,
        description="Whether to use STARTTLS when connecting to SMTP.",
    )
    SMTP_FROM_ADDRESS: str | None = Field(
        default=None,
        description="From address used in notification emails.",
    )

    # --- Calendar sync collaborator ---
    CALENDAR_SYNC_URL: str | None = Field(
        default=None,
        description=(
            "Base URL of the calendar synchronization service that mirrors "
            "bookings into Google/Microsoft calendars. Unset disables sync."
        ),
    )
    CALENDAR_SYNC_API_KEY: str | None = Field(default=None)
    CALENDAR_SYNC_TIMEOUT_SECONDS: float = Field(default=10.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
