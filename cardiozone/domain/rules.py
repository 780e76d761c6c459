"""
Debounced threshold-zone rules.

A rule is Cold while samples fall outside its zone and Hot while they fall
inside it. The cooldown anchor is the moment the rule last went Cold -> Hot:
firing is suppressed until `anchor + interval`, after which the rule stays
armed for as long as the subject remains in the zone. Only leaving the zone
moves the anchor.
"""

from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel, ConfigDict, model_validator

from cardiozone.domain.models import (
    AlertPreferences,
    CooldownSeconds,
    Sample,
    ensure_aware,
    utc_now,
)
from cardiozone.domain.waveform import PatternCatalog, WaveformPattern

logger = structlog.get_logger(__name__)


class ZoneThreshold(BaseModel):
    """Inclusive [min_rate, max_rate] band; either bound may be absent."""

    model_config = ConfigDict(frozen=True)

    min_rate: float | None = None
    max_rate: float | None = None

    @model_validator(mode="after")
    def min_not_above_max(self) -> "ZoneThreshold":
        if self.min_rate is not None and self.max_rate is not None:
            if self.min_rate > self.max_rate:
                raise ValueError(
                    f"min_rate ({self.min_rate}) must not exceed max_rate ({self.max_rate})"
                )
        return self

    def contains(self, value: float) -> bool:
        if self.max_rate is not None and value > self.max_rate:
            return False
        if self.min_rate is not None and value < self.min_rate:
            return False
        return True


class CooldownPolicy(BaseModel):
    """Minimum time between entering the zone and the next firing."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: CooldownSeconds | None = None

    @property
    def enabled(self) -> bool:
        return self.interval_seconds is not None


class ZoneRule:
    """
    Single zone evaluator with its own Cold/Hot state.

    State is only ever changed by `evaluate`. Configuration changes replace
    rules wholesale rather than editing them.
    """

    def __init__(
        self,
        name: str,
        pattern: WaveformPattern,
        threshold: ZoneThreshold | None = None,
        cooldown: CooldownPolicy | None = None,
    ) -> None:
        self.name = name
        self.pattern = pattern
        self.threshold = threshold or ZoneThreshold()
        self.cooldown = cooldown or CooldownPolicy()
        self._became_hot_at: datetime | None = None
        self.logger = logger.bind(component="zone_rule", rule=name)

    @property
    def is_hot(self) -> bool:
        return self._became_hot_at is not None

    @property
    def became_hot_at(self) -> datetime | None:
        return self._became_hot_at

    def evaluate(self, sample: Sample) -> bool:
        """Advance the state machine with one sample and report whether it fired."""
        if not self.threshold.contains(sample.value):
            self._became_hot_at = None
            return False

        was_hot = self._became_hot_at is not None
        if not was_hot:
            self._became_hot_at = sample.observed_at

        interval = self.cooldown.interval_seconds
        if interval is not None and was_hot:
            rearm_at = self._became_hot_at + timedelta(seconds=interval)  # type: ignore[operator]
            if sample.observed_at < rearm_at:
                self.logger.debug(
                    "zone_alert_suppressed",
                    value=sample.value,
                    rearm_at=rearm_at.isoformat(),
                )
                return False

        return True

    def remaining_cooldown(self, now: datetime | None = None) -> float:
        """
        Seconds until the rule may fire again; 0 when Cold or unconstrained.

        Raises:
            ValidationError: if `now` is a naive datetime.
        """
        now = utc_now() if now is None else ensure_aware(now)
        interval = self.cooldown.interval_seconds
        if interval is None or self._became_hot_at is None:
            return 0.0

        elapsed = (now - self._became_hot_at).total_seconds()
        return max(0.0, interval - elapsed)

    @classmethod
    def from_preferences(
        cls,
        preferences: AlertPreferences,
        catalog: PatternCatalog,
        name: str = "User Alert",
    ) -> "ZoneRule":
        return cls(
            name=name,
            pattern=catalog.lookup(preferences.pattern_name),
            threshold=ZoneThreshold(min_rate=preferences.min_rate, max_rate=preferences.max_rate),
            cooldown=CooldownPolicy(interval_seconds=preferences.cooldown_seconds),
        )

    def __repr__(self) -> str:
        return (
            f"ZoneRule(name={self.name!r}, min_rate={self.threshold.min_rate}, "
            f"max_rate={self.threshold.max_rate}, "
            f"cooldown_seconds={self.cooldown.interval_seconds}, "
            f"became_hot_at={self._became_hot_at})"
        )


def fallback_rules(catalog: PatternCatalog) -> list[ZoneRule]:
    """Rules the monitor runs before any configuration has been applied."""
    return [
        ZoneRule("Dual", catalog.lookup("EMERGENCY"), ZoneThreshold(min_rate=130)),
        ZoneRule("Single", catalog.lookup("WAVE"), ZoneThreshold(min_rate=60, max_rate=70)),
    ]
