"""
Sample stream boundary: subscription protocols, a callback bridge and a
simulated heart-rate source.

Key patterns:
- Protocol-based dependency injection for the sensor source
- Explicit subscribe/unsubscribe capability with a teardown hook that is
  guaranteed to run exactly once
- Transient source errors surface from the iterator without ending it
"""

import asyncio
import contextlib
import inspect
import random
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Protocol

import structlog

from cardiozone.domain.errors import TransientStreamError
from cardiozone.domain.models import Availability, AvailabilityChanged, Sample, StreamEvent

logger = structlog.get_logger(__name__)

TeardownHook = Callable[[], Awaitable[None] | None]


class SampleSubscription(Protocol):
    """
    A live stream of sensor events.

    `__anext__` may raise TransientStreamError for a hiccup; the caller can
    keep reading afterwards. `unsubscribe` must be idempotent and must end
    iteration promptly.
    """

    def __aiter__(self) -> AsyncIterator[StreamEvent]: ...

    async def __anext__(self) -> StreamEvent: ...

    async def unsubscribe(self) -> None: ...


class SampleSource(Protocol):
    """Something that can open a subscription to heart-rate samples."""

    source_name: str

    async def subscribe(self) -> SampleSubscription: ...


_END = object()


class QueueSampleSubscription:
    """
    Bridges a callback-style producer into the subscription protocol.

    Producers call `push_sample`, `push_availability`, `push_error` and
    `close` from the event loop. Consumers iterate. `unsubscribe` wakes a
    blocked reader, ends iteration and runs `on_close` once.
    """

    def __init__(self, on_close: TeardownHook | None = None, source_name: str = "queue") -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._on_close = on_close
        self._ended = False
        self._unsubscribed = False
        self.logger = logger.bind(component="sample_subscription", source=source_name)

    @property
    def unsubscribed(self) -> bool:
        return self._unsubscribed

    def push_sample(self, sample: Sample) -> bool:
        return self._put(sample)

    def push_availability(self, event: AvailabilityChanged) -> bool:
        return self._put(event)

    def push_error(self, error: TransientStreamError) -> bool:
        return self._put(error)

    def close(self) -> None:
        """Producer-side end of stream."""
        self._put(_END)

    def _put(self, item: object) -> bool:
        if self._unsubscribed:
            return False
        self._queue.put_nowait(item)
        return True

    def __aiter__(self) -> "QueueSampleSubscription":
        return self

    async def __anext__(self) -> StreamEvent:
        if self._ended:
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _END:
            self._ended = True
            raise StopAsyncIteration
        if isinstance(item, TransientStreamError):
            raise item
        return item  # type: ignore[return-value]

    async def unsubscribe(self) -> None:
        if self._unsubscribed:
            return
        self._unsubscribed = True
        self._queue.put_nowait(_END)

        if self._on_close is not None:
            try:
                result = self._on_close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.exception("subscription_teardown_failed", error=str(e))

        self.logger.info("subscription_closed")


class SimulatedHeartRateSource:
    """
    Simulated wrist sensor.

    Produces a bounded random walk around a baseline, an initial AVAILABLE
    signal and occasional transient errors. A `script` of values replaces the
    random walk and ends the stream once exhausted.
    """

    def __init__(
        self,
        source_name: str = "simulated-hr",
        baseline_bpm: float = 75.0,
        interval_seconds: float = 1.0,
        failure_rate: float = 0.02,
        rng: random.Random | None = None,
        script: Sequence[float] | None = None,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")

        self.source_name = source_name
        self.baseline_bpm = baseline_bpm
        self.interval_seconds = interval_seconds
        self.failure_rate = failure_rate
        self.script = list(script) if script is not None else None
        self._rng = rng or random.Random()
        self._producers: set[asyncio.Task[None]] = set()
        self.logger = logger.bind(source=source_name)

    @property
    def active_subscriptions(self) -> int:
        return sum(1 for task in self._producers if not task.done())

    async def subscribe(self) -> QueueSampleSubscription:
        producer: asyncio.Task[None] | None = None

        async def stop_producer() -> None:
            if producer is None:
                return
            producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer
            self._producers.discard(producer)

        subscription = QueueSampleSubscription(on_close=stop_producer, source_name=self.source_name)
        producer = asyncio.create_task(self._produce(subscription))
        self._producers.add(producer)
        self.logger.info("sensor_subscription_opened", interval_seconds=self.interval_seconds)
        return subscription

    async def _produce(self, subscription: QueueSampleSubscription) -> None:
        subscription.push_availability(AvailabilityChanged(availability=Availability.AVAILABLE))

        if self.script is not None:
            for value in self.script:
                await asyncio.sleep(self.interval_seconds)
                subscription.push_sample(Sample(value=value))
            subscription.close()
            return

        value = self.baseline_bpm
        while True:
            await asyncio.sleep(self.interval_seconds)

            if self._rng.random() < self.failure_rate:
                subscription.push_error(
                    TransientStreamError(
                        f"Sensor {self.source_name} dropped a reading", source=self.source_name
                    )
                )
                continue

            drift = 0.1 * (self.baseline_bpm - value)
            value = min(210.0, max(30.0, value + drift + self._rng.gauss(0.0, 2.5)))
            subscription.push_sample(Sample(value=round(value, 1)))
