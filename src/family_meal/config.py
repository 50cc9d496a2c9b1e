"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    firebase_project_id: str | None = None
    firebase_client_email: str | None = None
    firebase_private_key: str | None = None
    admin_token: str = ""
    allowed_emails: str | None = None
    require_email_allowlist: bool = False
    allow_role_reassign: bool = False
    timezone: str = "Asia/Seoul"
    app_version: str = "local"
    log_level: str = "INFO"
    client_error_rate_limit_window_seconds: int = 60
    client_error_rate_limit_max: int = 20
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_allowed_emails(raw: str | None) -> frozenset[str]:
    """Parse the comma-separated server allowlist into lowercase emails."""
    if raw is None:
        return frozenset()
    emails = {chunk.strip().lower() for chunk in raw.split(",")}
    return frozenset(email for email in emails if email)
