"""
Tests for multi-rule evaluation.

Key property: the engine returns exactly the rules that fire individually,
in configured order, and advances every rule once per sample.
"""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cardiozone.domain.models import Sample
from cardiozone.domain.rules import CooldownPolicy, ZoneRule, ZoneThreshold
from cardiozone.domain.waveform import PatternCatalog, new_pattern
from cardiozone.services.alert_engine import (
    AlertEngine,
    FiredAlert,
    classify_alert,
    heart_rate_status,
)

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=UTC)


class CountingRule(ZoneRule):
    """Zone rule that records how often it was evaluated."""

    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.evaluations = 0

    def evaluate(self, sample: Sample) -> bool:
        self.evaluations += 1
        return super().evaluate(sample)


@pytest.fixture
def catalog() -> PatternCatalog:
    return PatternCatalog.standard()


bound = st.one_of(st.none(), st.integers(min_value=20, max_value=220))
interval = st.one_of(st.none(), st.integers(min_value=5, max_value=300))
rule_params = st.tuples(bound, bound, interval)


def build_rules(params: list[tuple[int | None, int | None, int | None]]) -> list[CountingRule]:
    pattern = new_pattern([(50, 200), (50, 0)])
    rules = []
    for index, (low, high, cooldown) in enumerate(params):
        if low is not None and high is not None and low > high:
            low, high = high, low
        rules.append(
            CountingRule(
                f"rule-{index}",
                pattern,
                ZoneThreshold(min_rate=low, max_rate=high),
                CooldownPolicy(interval_seconds=cooldown),
            )
        )
    return rules


class TestAlertEngine:
    @given(
        params=st.lists(rule_params, min_size=1, max_size=6),
        values=st.lists(st.floats(min_value=20.0, max_value=220.0), min_size=1, max_size=10),
    )
    def test_fired_subset_matches_independent_evaluation(
        self, params: list[tuple[int | None, int | None, int | None]], values: list[float]
    ) -> None:
        rules = build_rules(params)
        shadows = build_rules(params)
        engine = AlertEngine(rules)

        for step, value in enumerate(values):
            sample = Sample(value=value, observed_at=T0 + timedelta(seconds=step * 2))

            fired = engine.evaluate(sample)
            expected = [shadow.name for shadow in shadows if shadow.evaluate(sample)]

            assert [alert.rule.name for alert in fired] == expected

        assert all(rule.evaluations == len(values) for rule in rules)

    def test_order_is_preserved(self, catalog: PatternCatalog) -> None:
        rules = [
            ZoneRule("third", catalog.lookup("WAVE")),
            ZoneRule("first", catalog.lookup("SHORT")),
            ZoneRule("second", catalog.lookup("PULSE")),
        ]
        engine = AlertEngine(rules)

        fired = engine.evaluate(Sample(value=100, observed_at=T0))

        assert [alert.rule.name for alert in fired] == ["third", "first", "second"]
        assert [alert.pattern for alert in fired] == [rule.pattern for rule in rules]

    def test_each_rule_state_advances_even_when_not_firing(self, catalog: PatternCatalog) -> None:
        low = ZoneRule("low", catalog.lookup("SHORT"), ZoneThreshold(max_rate=80))
        high = ZoneRule(
            "high",
            catalog.lookup("LONG"),
            ZoneThreshold(min_rate=120),
            CooldownPolicy(interval_seconds=10),
        )
        engine = AlertEngine([low, high])

        engine.evaluate(Sample(value=130, observed_at=T0))
        fired = engine.evaluate(Sample(value=135, observed_at=T0 + timedelta(seconds=1)))

        assert fired == []
        assert not low.is_hot
        assert high.is_hot
        assert high.became_hot_at == T0

    def test_fired_alert_carries_sample(self, catalog: PatternCatalog) -> None:
        engine = AlertEngine([ZoneRule("any", catalog.lookup("EMERGENCY"))])
        sample = Sample(value=140, observed_at=T0)

        (alert,) = engine.evaluate(sample)

        assert isinstance(alert, FiredAlert)
        assert alert.sample is sample
        assert alert.alert_kind == "High Alert"

    def test_rules_are_an_immutable_snapshot(self, catalog: PatternCatalog) -> None:
        source = [ZoneRule("a", catalog.lookup("SHORT"))]
        engine = AlertEngine(source)
        source.append(ZoneRule("b", catalog.lookup("SHORT")))

        assert len(engine) == 1
        assert isinstance(engine.rules, tuple)

    def test_empty_engine_fires_nothing(self) -> None:
        assert AlertEngine([]).evaluate(Sample(value=90, observed_at=T0)) == []


class TestClassification:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("LONG", "High Alert"),
            ("EMERGENCY", "High Alert"),
            ("SHORT", "Medium Alert"),
            ("DOUBLE_TAP", "Medium Alert"),
        ],
    )
    def test_alert_kind_by_peak_amplitude(
        self, catalog: PatternCatalog, name: str, expected: str
    ) -> None:
        assert classify_alert(catalog.lookup(name)) == expected

    def test_gentle_pattern_is_plain_alert(self) -> None:
        assert classify_alert(new_pattern([(50, 100), (50, 0)])) == "Alert"

    @pytest.mark.parametrize(
        "value,status",
        [(45, "Low"), (59.9, "Low"), (60, "Normal"), (99, "Normal"), (100, "Elevated"),
         (139, "Elevated"), (140, "High"), (190, "High")],
    )
    def test_heart_rate_status(self, value: float, status: str) -> None:
        assert heart_rate_status(value) == status
