"""
Runtime settings for the zone monitor, read from the environment.

Notes:
- Alert defaults pass through the same bounds as live preference updates,
  so a bad .env fails at startup instead of at the first sample
- Log format follows the environment: console in development, JSON elsewhere
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from cardiozone.domain.models import AlertPreferences, CooldownSeconds, HeartRate

load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class MonitoringConfig(BaseModel):
    """Core monitoring behaviour."""

    start_enabled: bool = Field(default=True, description="Subscribe to the sensor on startup")
    notifications_enabled: bool = Field(default=True, description="Show alert notifications")
    show_status_notifications: bool = Field(
        default=False, description="Show a status notification for every sample"
    )

    # Simulated sensor (development only)
    simulated_interval_seconds: float = Field(
        default=1.0, gt=0.0, description="Interval between simulated samples"
    )
    simulated_baseline_bpm: float = Field(
        default=75.0, ge=20.0, le=220.0, description="Resting rate of the simulated sensor"
    )


class AlertDefaultsConfig(BaseModel):
    """Alert thresholds used until the user configures their own."""

    min_heart_rate: HeartRate = Field(default=60, description="Lower bound of the target zone")
    max_heart_rate: HeartRate = Field(default=100, description="Upper bound of the target zone")
    cooldown_seconds: CooldownSeconds = Field(
        default=30, description="Seconds after entering the zone before re-alerting"
    )
    haptic_pattern: str = Field(default="SHORT", description="Catalog pattern name")

    @model_validator(mode="after")
    def min_not_above_max(self) -> "AlertDefaultsConfig":
        if self.min_heart_rate > self.max_heart_rate:
            raise ValueError("default min heart rate must not exceed default max heart rate")
        return self

    def to_preferences(self, monitoring: MonitoringConfig) -> AlertPreferences:
        return AlertPreferences(
            min_rate=self.min_heart_rate,
            max_rate=self.max_heart_rate,
            cooldown_seconds=self.cooldown_seconds,
            pattern_name=self.haptic_pattern,
            notifications_enabled=monitoring.notifications_enabled,
            show_status_notifications=monitoring.show_status_notifications,
        )


class LoggingConfig(BaseModel):
    """Level and renderer for structlog output."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Top-level settings: environment plus monitoring, alert and logging sections."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    alerts: AlertDefaultsConfig = Field(default_factory=AlertDefaultsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Debug output is a development-only switch."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> LogLevel:
    v = val.strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> AppConfig:
    """Build and validate `AppConfig` from environment variables."""

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    monitoring_config = MonitoringConfig(
        start_enabled=_parse_bool(os.getenv("START_ENABLED"), True),
        notifications_enabled=_parse_bool(os.getenv("NOTIFICATIONS_ENABLED"), True),
        show_status_notifications=_parse_bool(os.getenv("SHOW_STATUS_NOTIFICATIONS"), False),
        simulated_interval_seconds=float(os.getenv("SIMULATED_INTERVAL_SECONDS", "1.0")),
        simulated_baseline_bpm=float(os.getenv("SIMULATED_BASELINE_BPM", "75.0")),
    )

    alerts_config = AlertDefaultsConfig(
        min_heart_rate=int(os.getenv("DEFAULT_MIN_HEART_RATE", "60")),
        max_heart_rate=int(os.getenv("DEFAULT_MAX_HEART_RATE", "100")),
        cooldown_seconds=int(os.getenv("DEFAULT_ALERT_COOLDOWN", "30")),
        haptic_pattern=os.getenv("DEFAULT_HAPTIC_PATTERN", "SHORT"),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        monitoring=monitoring_config,
        alerts=alerts_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Process-wide settings, loaded once."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig) -> None:
    """Route structlog through stdlib logging with the configured level and renderer."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, config.level), force=True)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def validate_config() -> None:
    """Fail fast when the environment does not describe a valid configuration."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")
    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print the active settings."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n💓 ALERT DEFAULTS")
    print(f"Target Zone: {config.alerts.min_heart_rate}-{config.alerts.max_heart_rate} bpm")
    print(f"Cooldown: {config.alerts.cooldown_seconds}s")
    print(f"Haptic Pattern: {config.alerts.haptic_pattern}")

    print("\n📡 MONITORING")
    print(f"Start Enabled: {config.monitoring.start_enabled}")
    print(f"Notifications: {config.monitoring.notifications_enabled}")
    print(f"Status Notifications: {config.monitoring.show_status_notifications}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
