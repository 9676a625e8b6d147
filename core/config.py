"""
Configuration management with environment variable support and validation.

Design principles:
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no SMTP credentials in code)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class ChatConfig(BaseModel):
    """Chat listener configuration."""

    poll_interval_seconds: float = Field(
        default=3.0, gt=0.0, description="Interval between unread-message polls per user"
    )


class EmailConfig(BaseModel):
    """SMTP settings for the email channel."""

    username: str | None = Field(default=None, description="SMTP login, also used as sender")
    password: str | None = Field(default=None, description="SMTP password or app password")
    smtp_host: str = Field(default="smtp.gmail.com", min_length=1)
    smtp_port: int = Field(default=587, gt=0, lt=65536)
    use_tls: bool = Field(default=True, description="Issue STARTTLS before login")
    timeout_seconds: float = Field(default=10.0, gt=0.0, description="SMTP socket timeout")

    @property
    def is_configured(self) -> bool:
        return bool(self.username and self.password)


class AlertConfig(BaseModel):
    """Alert dispatch settings."""

    subject: str = Field(default="Emergency Alert", min_length=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")

    # Log destinations
    enable_file_logging: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(default="./logs/patient-monitor.log", description="Path to log file")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    chat: ChatConfig = Field(default_factory=ChatConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    chat_config = ChatConfig(
        poll_interval_seconds=float(os.getenv("CHAT_POLL_INTERVAL_SECONDS", "3.0")),
    )

    # SMTP login doubles as the sender address
    email_config = EmailConfig(
        username=os.getenv("EMAIL_USERNAME") or None,
        password=os.getenv("EMAIL_PASSWORD") or None,
        smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        use_tls=_parse_bool(os.getenv("SMTP_USE_TLS"), True),
        timeout_seconds=float(os.getenv("SMTP_TIMEOUT_SECONDS", "10.0")),
    )

    alert_config = AlertConfig(subject=os.getenv("ALERT_SUBJECT", "Emergency Alert"))

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
        enable_file_logging=_parse_bool(os.getenv("LOG_TO_FILE"), False),
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        chat=chat_config,
        email=email_config,
        alerts=alert_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
