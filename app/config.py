"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key for signing JWT tokens", min_length=1
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    auth_token_url: str = Field(
        default="/auth/token",
        description=(
            "Token endpoint of the platform login service that issues the "
            "access tokens this API accepts"
        ),
    )
    app_timezone: str | None = Field(
        default=None,
        description="IANA timezone (or UTC+hh:mm offset) used for stored timestamps",
    )
    app_name: str = Field(
        default="Partner Network",
        description="Product name shown in email subjects and templates",
    )
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Base URL used to build deep links inside notification emails",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending transactional emails via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of transactional messages",
        min_length=3,
    )
    email_send_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout applied to every outbound transport call",
        ge=1,
        le=60,
    )
    email_delivery_workers: int = Field(
        default=4,
        description="Size of the thread pool used for immediate email deliveries",
        gt=0,
    )

    notification_worker_enabled: bool = Field(
        default=True,
        description="Start the retry sweeper when the application boots",
    )
    notification_sweep_interval_seconds: float = Field(
        default=10.0,
        description="Pause between two retry sweeper passes",
        gt=0,
    )
    notification_sweep_batch_size: int = Field(
        default=50,
        description="Maximum number of outbox rows handled by each sweeper pass",
        gt=0,
    )

    email_dm_batch_seconds: int = Field(
        default=60, description="Digest window for direct messages", gt=0
    )
    email_community_batch_seconds: int = Field(
        default=300, description="Digest window for community mentions", gt=0
    )
    email_project_timeline_batch_seconds: int = Field(
        default=600, description="Digest window for project timeline updates", gt=0
    )

    @model_validator(mode="after")
    def _validate_sendgrid_pair(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        return self

    @property
    def email_configured(self) -> bool:
        """Return ``True`` when real email delivery through SendGrid is enabled."""

        return bool(self.sendgrid_api_key and self.sendgrid_sender)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
