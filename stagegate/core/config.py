from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STAGEGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # Appointment reminder urgency windows (minutes before the appointment)
    urgency_critical_minutes: int = 30
    urgency_alert_minutes: int = 120
    urgency_reminder_minutes: int = 1440

    # Notification dedup cache bounds
    notification_dedup_max_entries: int = 1024
    notification_dedup_ttl_seconds: int = 86400


@lru_cache
def get_settings() -> Settings:
    return Settings()
