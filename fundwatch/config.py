"""
FundWatch Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = Field(default="TRUEFAM", alias="APP_NAME")
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # ── API ───────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8002, alias="API_PORT")
    api_prefix: str = "/api/v1"

    # ── Rule monitor ─────────────────────────────────────────────────────
    monitor_enabled: bool = Field(default=True, alias="MONITOR_ENABLED")
    monitor_interval_seconds: int = Field(default=60, alias="MONITOR_INTERVAL_SECONDS")
    default_lookback_hours: float = Field(default=24.0, alias="DEFAULT_LOOKBACK_HOURS")
    template_window_hours: float = Field(default=24.0, alias="TEMPLATE_WINDOW_HOURS")
    timestamp_format: str = Field(
        default="%m/%d/%Y, %I:%M:%S %p",
        alias="TIMESTAMP_FORMAT",
        description="strftime format for the {timestamp} template variable",
    )
    seed_default_templates: bool = Field(default=True, alias="SEED_DEFAULT_TEMPLATES")

    # ── Persistence ───────────────────────────────────────────────────────
    store_backend: str = Field(default="file", alias="STORE_BACKEND")  # file | redis | memory
    store_path: str = Field(default="./data", alias="STORE_PATH")
    store_key_prefix: str = Field(default="fundwatch:", alias="STORE_KEY_PREFIX")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # ── Activity source ───────────────────────────────────────────────────
    activity_api_url: str = Field(default="http://localhost:8000", alias="ACTIVITY_API_URL")
    activity_api_key: str = Field(default="", alias="ACTIVITY_API_KEY")
    activity_timeout_seconds: float = Field(default=10.0, alias="ACTIVITY_TIMEOUT_SECONDS")

    # ── Channels ──────────────────────────────────────────────────────────
    webhook_timeout_seconds: Optional[float] = Field(default=None, alias="WEBHOOK_TIMEOUT_SECONDS")

    expo_push_url: str = Field(
        default="https://exp.host/--/api/v2/push/send",
        alias="EXPO_PUSH_URL",
    )
    expo_push_tokens: List[str] = Field(default_factory=list, alias="EXPO_PUSH_TOKENS")

    twilio_account_sid: str = Field(default="", alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str = Field(default="", alias="TWILIO_AUTH_TOKEN")
    twilio_whatsapp_number: str = Field(default="", alias="TWILIO_WHATSAPP_NUMBER")
    whatsapp_group_recipients: List[str] = Field(
        default_factory=list,
        alias="WHATSAPP_GROUP_RECIPIENTS",
    )

    smtp_host: str = Field(default="", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str = Field(default="", alias="SMTP_USER")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    smtp_from_email: str = Field(default="alerts@truefam.app", alias="SMTP_FROM_EMAIL")

    # ── Operational ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")  # console | json

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_whatsapp_number)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)


settings = Settings()
