"""
Multi-rule evaluation engine.

Rules are evaluated sequentially in configured order and the fired subset is
returned in that same order, so actuation sequencing is deterministic.
"""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from cardiozone.domain.models import Sample
from cardiozone.domain.rules import ZoneRule
from cardiozone.domain.waveform import WaveformPattern

logger = structlog.get_logger(__name__)


def classify_alert(pattern: WaveformPattern) -> str:
    """Alert kind shown to the user, graded by the pattern's strongest step."""
    if pattern.max_amplitude > 200:
        return "High Alert"
    if pattern.max_amplitude > 100:
        return "Medium Alert"
    return "Alert"


def heart_rate_status(value: float) -> str:
    if value < 60:
        return "Low"
    if value < 100:
        return "Normal"
    if value < 140:
        return "Elevated"
    return "High"


@dataclass(frozen=True)
class FiredAlert:
    """A rule that fired for a given sample."""

    rule: ZoneRule
    pattern: WaveformPattern
    sample: Sample

    @property
    def alert_kind(self) -> str:
        return classify_alert(self.pattern)


class AlertEngine:
    """Holds an ordered, fixed set of rules. Replace the engine to change the rules."""

    def __init__(self, rules: Iterable[ZoneRule]) -> None:
        self._rules: tuple[ZoneRule, ...] = tuple(rules)
        self.logger = logger.bind(component="alert_engine")

    @property
    def rules(self) -> tuple[ZoneRule, ...]:
        return self._rules

    def evaluate(self, sample: Sample) -> list[FiredAlert]:
        """Evaluate every rule exactly once against `sample`."""
        fired: list[FiredAlert] = []
        for rule in self._rules:
            if rule.evaluate(sample):
                fired.append(FiredAlert(rule=rule, pattern=rule.pattern, sample=sample))

        self.logger.debug(
            "sample_evaluated",
            value=sample.value,
            rules=len(self._rules),
            fired=[alert.rule.name for alert in fired],
        )
        return fired

    def __len__(self) -> int:
        return len(self._rules)
