"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, SecretStr, model_validator

from viewrate.core.types import TrackedItem

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class YouTubeConfig(BaseModel):
    """YouTube Data API v3 configuration."""

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://www.googleapis.com/youtube/v3"
    timeout_secs: float = 10.0


class SchedulerConfig(BaseModel):
    """Poll cadence, alert cooldown and sweep fan-out."""

    poll_interval_secs: float = 60.0
    cooldown_secs: float = 300.0
    max_concurrency: int = 10
    history_limit: int = 60

    @model_validator(mode="after")
    def _cooldown_covers_interval(self) -> SchedulerConfig:
        if self.poll_interval_secs <= 0:
            raise ValueError("poll_interval_secs must be positive")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        # A cooldown shorter than one tick re-alerts on every sweep.
        if self.cooldown_secs < self.poll_interval_secs:
            raise ValueError(
                f"cooldown_secs ({self.cooldown_secs}) must be >= "
                f"poll_interval_secs ({self.poll_interval_secs})"
            )
        return self


class StorageConfig(BaseModel):
    """Persistence backend for items, samples and the alert log."""

    backend: Literal["memory", "sqlite"] = "memory"
    path: str = "data/viewrate.db"


class EmailConfig(BaseModel):
    """SendGrid email delivery."""

    enabled: bool = False
    api_key: SecretStr = SecretStr("")
    from_address: str = ""
    from_name: str = "View Rate Tracker"
    base_url: str = "https://api.sendgrid.com/v3/mail/send"


class ChatConfig(BaseModel):
    """Zalo Official Account chat delivery."""

    enabled: bool = False
    access_token: SecretStr = SecretStr("")
    base_url: str = "https://openapi.zalo.me/v2.0/oa/message"


class SmsConfig(BaseModel):
    """Twilio SMS delivery."""

    enabled: bool = False
    account_sid: str = ""
    auth_token: SecretStr = SecretStr("")
    from_number: str = ""
    base_url: str = "https://api.twilio.com/2010-04-01"


class AlertsConfig(BaseModel):
    """Container for notification channel configurations."""

    # Wire log-only channels for every disabled channel.
    dry_run: bool = False
    email: EmailConfig = EmailConfig()
    chat: ChatConfig = ChatConfig()
    sms: SmsConfig = SmsConfig()


class ApiConfig(BaseModel):
    """JSON query API served over aiohttp."""

    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    # Third-party loggers held at WARNING or above.
    quiet_loggers: list[str] = ["aiohttp.access"]


class Settings(BaseModel):
    """Root settings container."""

    youtube: YouTubeConfig = YouTubeConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    storage: StorageConfig = StorageConfig()
    alerts: AlertsConfig = AlertsConfig()
    api: ApiConfig = ApiConfig()
    items: list[TrackedItem] = []
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
