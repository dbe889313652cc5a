"""Alarm service configuration management.

This module provides the configuration dataclass for the session tracker:
Telegram credentials, database location, polling and reminder timing,
HTTP control surface and logging settings.

SECURITY: The bot token is loaded from environment variables only.
See .env.example for configuration template.
"""

import os
from dataclasses import dataclass
from typing import Optional

# Load .env file if it exists (for local development)
# In production, environment variables are set by the deployment platform
from dotenv import load_dotenv

from .exceptions import InvalidConfigValueError, MissingCredentialError

load_dotenv()

_TRUE_VALUES = ("true", "1", "yes")


@dataclass
class AlarmConfig:
    """Service configuration loaded from environment variables.

    Always use AlarmConfig.from_env() in production; direct construction
    is meant for tests and embedding.
    """

    # Telegram
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"

    # Storage
    database_url: str = "sqlite:///tradealarm.db"
    db_connect_timeout_seconds: int = 10
    db_statement_timeout_ms: int = 5000  # PostgreSQL only

    # Session defaults (used when a chat /start creates a new session)
    default_interval_minutes: int = 5

    # Inbound polling
    poll_interval_seconds: float = 1.5  # Sleep between poll cycles
    long_poll_timeout_seconds: int = 20  # getUpdates server-side wait
    retry_backoff_seconds: float = 5.0  # Sleep after a transport error

    # Outbound notifications
    send_timeout_seconds: float = 10.0
    currency_label: str = "Rp"

    # HTTP control surface
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "AlarmConfig":
        """Load configuration from environment variables.

        Returns:
            AlarmConfig instance with values from environment

        Raises:
            InvalidConfigValueError: If a numeric variable cannot be parsed

        Example:
            >>> config = AlarmConfig.from_env()
            >>> config.validate()
            (True, None)
        """
        try:
            default_interval = int(os.getenv("ALARM_DEFAULT_INTERVAL_MINUTES", "5"))
            poll_interval = float(os.getenv("ALARM_POLL_INTERVAL_SECONDS", "1.5"))
            long_poll_timeout = int(os.getenv("ALARM_LONG_POLL_TIMEOUT_SECONDS", "20"))
            retry_backoff = float(os.getenv("ALARM_RETRY_BACKOFF_SECONDS", "5.0"))
            send_timeout = float(os.getenv("ALARM_SEND_TIMEOUT_SECONDS", "10.0"))
            db_connect_timeout = int(os.getenv("ALARM_DB_CONNECT_TIMEOUT_SECONDS", "10"))
            db_statement_timeout = int(os.getenv("ALARM_DB_STATEMENT_TIMEOUT_MS", "5000"))
            port = int(os.getenv("PORT", "3000"))
        except ValueError as e:
            raise InvalidConfigValueError(f"Invalid numeric configuration value: {e}") from e

        return cls(
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            telegram_api_base=os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///tradealarm.db"),
            db_connect_timeout_seconds=db_connect_timeout,
            db_statement_timeout_ms=db_statement_timeout,
            default_interval_minutes=default_interval,
            poll_interval_seconds=poll_interval,
            long_poll_timeout_seconds=long_poll_timeout,
            retry_backoff_seconds=retry_backoff,
            send_timeout_seconds=send_timeout,
            currency_label=os.getenv("ALARM_CURRENCY_LABEL", "Rp"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=os.getenv("LOG_JSON", "true").lower() in _TRUE_VALUES,
        )

    def validate(self) -> tuple[bool, Optional[str]]:
        """Validate timing and limit parameters.

        Returns:
            (is_valid, error_message) tuple
        """
        if self.default_interval_minutes <= 0:
            return False, "default_interval_minutes must be positive"

        if self.poll_interval_seconds < 0:
            return False, "poll_interval_seconds must not be negative"

        if self.long_poll_timeout_seconds < 0:
            return False, "long_poll_timeout_seconds must not be negative"

        if self.retry_backoff_seconds <= 0:
            return False, "retry_backoff_seconds must be positive"

        if self.send_timeout_seconds <= 0:
            return False, "send_timeout_seconds must be positive"

        if not 0 < self.port < 65536:
            return False, f"port {self.port} must be between 1 and 65535"

        if not self.database_url:
            return False, "database_url must be set"

        if self.db_connect_timeout_seconds <= 0:
            return False, "db_connect_timeout_seconds must be positive"

        if self.db_statement_timeout_ms <= 0:
            return False, "db_statement_timeout_ms must be positive"

        return True, None

    def require_valid(self, require_token: bool = True) -> "AlarmConfig":
        """Raise if the configuration cannot run the service.

        Args:
            require_token: Whether a Telegram bot token is mandatory

        Raises:
            MissingCredentialError: Bot token missing
            InvalidConfigValueError: A parameter is out of range
        """
        if require_token and not self.telegram_bot_token:
            raise MissingCredentialError(
                "Missing TELEGRAM_BOT_TOKEN. Set it in the environment or .env file."
            )

        is_valid, error = self.validate()
        if not is_valid:
            raise InvalidConfigValueError(error)

        return self

    def __repr__(self) -> str:
        """String representation with the bot token masked."""
        masked_token = "***REDACTED***" if self.telegram_bot_token else None

        return (
            f"AlarmConfig(telegram_bot_token={masked_token}, "
            f"database_url={self.database_url.split('@')[-1]}, "
            f"default_interval_minutes={self.default_interval_minutes}, "
            f"poll_interval_seconds={self.poll_interval_seconds}, "
            f"host={self.host}, port={self.port})"
        )
