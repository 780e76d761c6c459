"""
Tests for the sample stream boundary.

Covers:
- QueueSampleSubscription: ordering, transient errors, producer close,
  unsubscribe waking a blocked reader, teardown hook called once
- SimulatedHeartRateSource: scripted values, random walk, cleanup on unsubscribe
"""

import asyncio
import random

import pytest

from cardiozone.domain.errors import TransientStreamError
from cardiozone.domain.models import Availability, AvailabilityChanged, Sample
from cardiozone.services.sample_stream import QueueSampleSubscription, SimulatedHeartRateSource


class TestQueueSampleSubscription:
    @pytest.mark.asyncio
    async def test_events_arrive_in_order(self) -> None:
        subscription = QueueSampleSubscription()
        first, second = Sample(value=70), Sample(value=71)
        availability = AvailabilityChanged(availability=Availability.AVAILABLE)

        subscription.push_availability(availability)
        subscription.push_sample(first)
        subscription.push_sample(second)
        subscription.close()

        events = [event async for event in subscription]

        assert events == [availability, first, second]

    @pytest.mark.asyncio
    async def test_transient_error_does_not_end_iteration(self) -> None:
        subscription = QueueSampleSubscription()
        subscription.push_error(TransientStreamError("glitch"))
        subscription.push_sample(Sample(value=88))

        with pytest.raises(TransientStreamError, match="glitch"):
            await anext(subscription)

        event = await anext(subscription)
        assert isinstance(event, Sample)
        assert event.value == 88

    @pytest.mark.asyncio
    async def test_unsubscribe_wakes_blocked_reader(self) -> None:
        subscription = QueueSampleSubscription()
        reader = asyncio.create_task(anext(subscription))
        await asyncio.sleep(0)

        await subscription.unsubscribe()

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(reader, timeout=1.0)

    @pytest.mark.asyncio
    async def test_teardown_hook_runs_exactly_once(self) -> None:
        calls = 0

        async def on_close() -> None:
            nonlocal calls
            calls += 1

        subscription = QueueSampleSubscription(on_close=on_close)

        await subscription.unsubscribe()
        await subscription.unsubscribe()

        assert calls == 1
        assert subscription.unsubscribed

    @pytest.mark.asyncio
    async def test_sync_teardown_hook_and_failures_are_contained(self) -> None:
        def on_close() -> None:
            raise RuntimeError("sensor already gone")

        subscription = QueueSampleSubscription(on_close=on_close)

        await subscription.unsubscribe()

        assert subscription.unsubscribed

    @pytest.mark.asyncio
    async def test_pushes_after_unsubscribe_are_dropped(self) -> None:
        subscription = QueueSampleSubscription()
        await subscription.unsubscribe()

        assert subscription.push_sample(Sample(value=70)) is False
        assert [event async for event in subscription] == []


class TestSimulatedHeartRateSource:
    def test_rejects_invalid_settings(self) -> None:
        with pytest.raises(ValueError):
            SimulatedHeartRateSource(failure_rate=1.5)
        with pytest.raises(ValueError):
            SimulatedHeartRateSource(interval_seconds=-1)

    @pytest.mark.asyncio
    async def test_scripted_values_then_end_of_stream(self) -> None:
        source = SimulatedHeartRateSource(interval_seconds=0, script=[72, 95, 130])

        subscription = await source.subscribe()
        events = [event async for event in subscription]
        await subscription.unsubscribe()

        assert isinstance(events[0], AvailabilityChanged)
        assert events[0].availability == Availability.AVAILABLE
        assert [event.value for event in events[1:]] == [72, 95, 130]
        assert source.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_random_walk_stays_plausible(self) -> None:
        source = SimulatedHeartRateSource(
            baseline_bpm=80, interval_seconds=0, failure_rate=0.0, rng=random.Random(1)
        )
        subscription = await source.subscribe()

        samples: list[Sample] = []
        async for event in subscription:
            if isinstance(event, Sample):
                samples.append(event)
            if len(samples) >= 50:
                break
        await subscription.unsubscribe()

        assert all(30.0 <= sample.value <= 210.0 for sample in samples)
        assert source.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_failures_surface_as_transient_errors(self) -> None:
        source = SimulatedHeartRateSource(
            interval_seconds=0, failure_rate=1.0, rng=random.Random(2)
        )
        subscription = await source.subscribe()

        assert isinstance(await anext(subscription), AvailabilityChanged)
        with pytest.raises(TransientStreamError):
            await anext(subscription)

        await subscription.unsubscribe()
        assert source.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_each_subscription_has_its_own_producer(self) -> None:
        source = SimulatedHeartRateSource(interval_seconds=0.01, failure_rate=0.0)

        first = await source.subscribe()
        second = await source.subscribe()
        assert source.active_subscriptions == 2

        await first.unsubscribe()
        assert source.active_subscriptions == 1

        await second.unsubscribe()
        assert source.active_subscriptions == 0
