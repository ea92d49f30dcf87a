"""
Configuration management for DelayWatch.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class AviationStackConfig:
    """AviationStack API configuration for flight schedules."""
    api_key: Optional[str] = os.getenv('FLIGHT_API_KEY') or None
    base_url: str = os.getenv('FLIGHT_API_BASE_URL', 'http://api.aviationstack.com/v1')
    page_limit: int = 20
    timeout_seconds: int = 15
    min_request_interval: float = 1.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != 'your_api_key_here'


@dataclass(frozen=True)
class TwilioConfig:
    """Twilio SMS gateway configuration."""
    account_sid: Optional[str] = os.getenv('TWILIO_ACCOUNT_SID') or None
    auth_token: Optional[str] = os.getenv('TWILIO_AUTH_TOKEN') or None
    from_number: Optional[str] = os.getenv('TWILIO_PHONE_NUMBER') or None
    base_url: str = 'https://api.twilio.com/2010-04-01'
    timeout_seconds: int = 10

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///delaywatch.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')


@dataclass(frozen=True)
class MonitorConfig:
    """Poll cycle and notification settings."""
    check_interval_minutes: int = int(os.getenv('CHECK_INTERVAL_MINUTES', '15'))
    fetch_direction: str = 'departures'

    # Minimum delay (minutes) before a flight is worth a notification
    delay_threshold: int = 15
    # Re-notify once an already-delayed flight slips this much further
    worsening_step: int = 10

    # Gap between outbound messages (gateway rate limits)
    send_interval_seconds: float = 0.1


@dataclass(frozen=True)
class RetentionConfig:
    """Bounds on retained history."""
    max_flight_records: int = 10000  # ~1 year of data at typical volumes
    max_trend_points: int = 365
    max_poll_log_entries: int = 100  # per airport


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    aviationstack: AviationStackConfig
    twilio: TwilioConfig
    database: DatabaseConfig
    monitor: MonitorConfig
    retention: RetentionConfig

    # Flask settings
    secret_key: str
    debug: bool
    port: int


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        aviationstack=AviationStackConfig(),
        twilio=TwilioConfig(),
        database=DatabaseConfig(),
        monitor=MonitorConfig(),
        retention=RetentionConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
        port=int(os.getenv('PORT', '3000')),
    )


# Singleton instance
config = load_config()
