"""
Tests for configuration management in `cardiozone/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Boolean parsing for monitoring switches
- Alert defaults validation and conversion to preferences
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from cardiozone.config import (
    AlertDefaultsConfig,
    AppConfig,
    LoggingConfig,
    MonitoringConfig,
    configure_logging,
    get_config,
    load_config_from_env,
)
from cardiozone.domain.models import AlertPreferences

ENV_VARS = (
    "ENVIRONMENT",
    "START_ENABLED",
    "NOTIFICATIONS_ENABLED",
    "SHOW_STATUS_NOTIFICATIONS",
    "SIMULATED_INTERVAL_SECONDS",
    "SIMULATED_BASELINE_BPM",
    "DEFAULT_MIN_HEART_RATE",
    "DEFAULT_MAX_HEART_RATE",
    "DEFAULT_ALERT_COOLDOWN",
    "DEFAULT_HAPTIC_PATTERN",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start each test from an empty environment and a cold config cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults() -> None:
    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.logging.level == "INFO"
    assert config.monitoring.start_enabled is True
    assert config.alerts.haptic_pattern == "SHORT"


def test_load_config_production_uses_json_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "prod")

    config = load_config_from_env()

    assert config.environment == "production"
    assert config.debug is False
    assert config.logging.format == "json"


def test_staging_alias(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "stage")

    assert load_config_from_env().environment == "staging"


def test_boolean_switch_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("START_ENABLED", "off")
    monkeypatch.setenv("NOTIFICATIONS_ENABLED", "0")
    monkeypatch.setenv("SHOW_STATUS_NOTIFICATIONS", "yes")

    monitoring = load_config_from_env().monitoring

    assert monitoring.start_enabled is False
    assert monitoring.notifications_enabled is False
    assert monitoring.show_status_notifications is True


@pytest.mark.parametrize(
    "raw,expected",
    [("debug", "DEBUG"), (" warning ", "WARNING"), ("verbose", "INFO")],
)
def test_log_level_coercion(monkeypatch: pytest.MonkeyPatch, raw: str, expected: str) -> None:
    monkeypatch.setenv("LOG_LEVEL", raw)

    assert load_config_from_env().logging.level == expected


def test_alert_defaults_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEFAULT_MIN_HEART_RATE", "110")
    monkeypatch.setenv("DEFAULT_MAX_HEART_RATE", "170")
    monkeypatch.setenv("DEFAULT_ALERT_COOLDOWN", "45")
    monkeypatch.setenv("DEFAULT_HAPTIC_PATTERN", "PULSE")

    alerts = load_config_from_env().alerts

    assert (alerts.min_heart_rate, alerts.max_heart_rate) == (110, 170)
    assert alerts.cooldown_seconds == 45
    assert alerts.haptic_pattern == "PULSE"


@pytest.mark.parametrize(
    "name,value",
    [
        ("DEFAULT_MIN_HEART_RATE", "10"),
        ("DEFAULT_MAX_HEART_RATE", "250"),
        ("DEFAULT_ALERT_COOLDOWN", "2"),
    ],
)
def test_out_of_range_alert_defaults_fail_fast(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        load_config_from_env()


def test_alert_defaults_min_above_max_rejected() -> None:
    with pytest.raises(ValidationError, match="must not exceed"):
        AlertDefaultsConfig(min_heart_rate=120, max_heart_rate=100)


def test_alert_defaults_to_preferences() -> None:
    alerts = AlertDefaultsConfig(min_heart_rate=90, max_heart_rate=150, haptic_pattern="WAVE")
    monitoring = MonitoringConfig(notifications_enabled=False, show_status_notifications=True)

    assert alerts.to_preferences(monitoring) == AlertPreferences(
        min_rate=90,
        max_rate=150,
        cooldown_seconds=30,
        pattern_name="WAVE",
        notifications_enabled=False,
        show_status_notifications=True,
    )


def test_simulated_interval_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        MonitoringConfig(simulated_interval_seconds=0)


def test_get_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_config()
    monkeypatch.setenv("ENVIRONMENT", "production")
    second = get_config()

    assert first is second
    assert second.environment == "development"

    get_config.cache_clear()
    assert get_config().environment == "production"


def test_debug_only_allowed_in_development() -> None:
    with pytest.raises(ValidationError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True)

    assert AppConfig(environment="development", debug=True).debug is True


def test_configure_logging_accepts_both_formats() -> None:
    configure_logging(LoggingConfig(level="DEBUG", format="console"))
    configure_logging(LoggingConfig(level="WARNING", format="json"))
