"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    startup_attempts: int = 3
    startup_retry_delay_seconds: float = 5.0
    startup_timeout_seconds: float = 60.0
    dispatch_concurrency: int = 3
    whatsapp_web_url: str = "https://web.whatsapp.com"
    browser_headless: bool = True
    browser_executable_path: str | None = None
    browser_args: str | None = None
    watch_interval_seconds: float = 2.0
    send_timeout_seconds: float = 30.0
    media_fetch_timeout_seconds: float = 30.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_browser_args(raw: str | None) -> list[str]:
    """Parse extra Chromium flags from a comma separated env value."""
    if raw is None:
        return []
    args: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if value and value not in args:
            args.append(value)
    return args
