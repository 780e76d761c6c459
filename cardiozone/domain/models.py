"""
Domain models for heart-rate zone monitoring.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation so that malformed input is rejected at the
boundary with a single error type.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, TypeAdapter, model_validator

MIN_PLAUSIBLE_BPM = 20
MAX_PLAUSIBLE_BPM = 220
MIN_COOLDOWN_SECONDS = 5
MAX_COOLDOWN_SECONDS = 300

HeartRate = Annotated[int, Field(ge=MIN_PLAUSIBLE_BPM, le=MAX_PLAUSIBLE_BPM)]
CooldownSeconds = Annotated[int, Field(ge=MIN_COOLDOWN_SECONDS, le=MAX_COOLDOWN_SECONDS)]


def utc_now() -> datetime:
    return datetime.now(UTC)


_INSTANT = TypeAdapter(AwareDatetime)


def ensure_aware(moment: datetime) -> datetime:
    """Reject naive datetimes with the same error `Sample.observed_at` raises."""
    return _INSTANT.validate_python(moment)


class Sample(BaseModel):
    """Single heart-rate reading delivered by the sensor source."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(description="Heart rate in beats per minute")
    observed_at: AwareDatetime = Field(default_factory=utc_now)


class Availability(str, Enum):
    """Sensor availability states reported alongside the sample stream."""

    AVAILABLE = "available"
    ACQUIRING = "acquiring"
    UNAVAILABLE = "unavailable"
    UNAVAILABLE_DEVICE_OFF_BODY = "unavailable_device_off_body"
    UNKNOWN = "unknown"


class AvailabilityChanged(BaseModel):
    """Out-of-band signal from the sample source. Observability only."""

    model_config = ConfigDict(frozen=True)

    availability: Availability
    observed_at: AwareDatetime = Field(default_factory=utc_now)


StreamEvent = Sample | AvailabilityChanged


def _check_rate_order(min_rate: int | None, max_rate: int | None) -> None:
    if min_rate is not None and max_rate is not None and min_rate > max_rate:
        raise ValueError("Min heart rate must be less than or equal to max heart rate")


class AlertPreferences(BaseModel):
    """
    One configuration update for the monitor.

    Every update carries the full set of values so the monitor can derive a
    fresh rule set from it without combining partial updates.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_rate: HeartRate | None = 60
    max_rate: HeartRate | None = 100
    cooldown_seconds: CooldownSeconds | None = 30
    pattern_name: str = "SHORT"
    notifications_enabled: bool = True
    show_status_notifications: bool = False

    @model_validator(mode="after")
    def min_not_above_max(self) -> "AlertPreferences":
        _check_rate_order(self.min_rate, self.max_rate)
        return self


class PreferencesUpdate(AlertPreferences):
    """
    Preference update received as a raw mapping, e.g. from a synced store.

    The zone fields are required here: a partial or misspelled payload is
    rejected instead of silently falling back to the defaults.
    """

    min_rate: HeartRate | None
    max_rate: HeartRate | None
    cooldown_seconds: CooldownSeconds | None
    pattern_name: str
    notifications_enabled: bool


class AlertProfile(BaseModel):
    """Named alert profile as stored and synced outside the core."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    name: str = Field(min_length=1)
    min_rate: HeartRate
    max_rate: HeartRate
    pattern_name: str = Field(description="Catalog pattern name, e.g. SHORT or PULSE")
    cooldown_seconds: CooldownSeconds
    notifications_enabled: bool
    is_active: bool = False
    created_at: AwareDatetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def min_not_above_max(self) -> "AlertProfile":
        _check_rate_order(self.min_rate, self.max_rate)
        return self

    def to_preferences(self, show_status_notifications: bool = False) -> AlertPreferences:
        return AlertPreferences(
            min_rate=self.min_rate,
            max_rate=self.max_rate,
            cooldown_seconds=self.cooldown_seconds,
            pattern_name=self.pattern_name,
            notifications_enabled=self.notifications_enabled,
            show_status_notifications=show_status_notifications,
        )

    @classmethod
    def default(cls) -> "AlertProfile":
        return cls(
            name="Default",
            min_rate=60,
            max_rate=100,
            pattern_name="SHORT",
            cooldown_seconds=30,
            notifications_enabled=True,
            is_active=True,
        )

    @classmethod
    def cardio(cls) -> "AlertProfile":
        """Cardio workout profile with higher heart-rate ranges."""
        return cls(
            name="Cardio Workout",
            min_rate=100,
            max_rate=180,
            pattern_name="PULSE",
            cooldown_seconds=20,
            notifications_enabled=True,
        )

    @classmethod
    def recovery(cls) -> "AlertProfile":
        return cls(
            name="Recovery",
            min_rate=40,
            max_rate=80,
            pattern_name="DOUBLE_TAP",
            cooldown_seconds=60,
            notifications_enabled=False,
        )

    @classmethod
    def warm_up(cls) -> "AlertProfile":
        return cls(
            name="Warm-up",
            min_rate=70,
            max_rate=120,
            pattern_name="LONG",
            cooldown_seconds=30,
            notifications_enabled=True,
        )


def standard_presets() -> list[AlertProfile]:
    """Profiles offered out of the box, default first."""
    return [
        AlertProfile.default(),
        AlertProfile.cardio(),
        AlertProfile.recovery(),
        AlertProfile.warm_up(),
    ]
