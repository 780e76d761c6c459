"""
Monitoring orchestrator: binds a live sample stream to zone-rule evaluation.

Pipeline per sample:
1. Read the next event from the subscription (the only suspension point)
2. Evaluate the active rule set under the monitor lock
3. Dispatch each fired pattern through the shared actuation gate
4. Notify the user, if notifications are enabled

Configuration updates arrive independently and replace the whole rule set
under the same lock, so a swap always lands between two evaluations.
"""

import asyncio
import inspect
from collections import Counter
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Protocol

import structlog

from cardiozone.domain.errors import ConfigurationRejected, TransientStreamError, ValidationError
from cardiozone.domain.models import (
    AlertPreferences,
    AlertProfile,
    AvailabilityChanged,
    PreferencesUpdate,
    Sample,
    ensure_aware,
    utc_now,
)
from cardiozone.domain.result import Result
from cardiozone.domain.rules import ZoneRule, fallback_rules
from cardiozone.domain.waveform import PatternCatalog
from cardiozone.services.actuation import ActuationGate, ActuationSink, NotificationSink
from cardiozone.services.alert_engine import AlertEngine, FiredAlert, heart_rate_status
from cardiozone.services.sample_stream import SampleSource, SampleSubscription

logger = structlog.get_logger(__name__)

ConfigurationUpdate = AlertPreferences | AlertProfile | Mapping[str, Any]


class ConfigSource(Protocol):
    """Stream of configuration updates, e.g. from a preference store."""

    def updates(self) -> AsyncIterator[ConfigurationUpdate]: ...


_END = object()


class QueueConfigSource:
    """In-process configuration source fed by `publish`."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def publish(self, update: ConfigurationUpdate) -> None:
        self._queue.put_nowait(update)

    def close(self) -> None:
        self._queue.put_nowait(_END)

    async def updates(self) -> AsyncIterator[ConfigurationUpdate]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item  # type: ignore[misc]


@dataclass(frozen=True)
class MonitorState:
    """Point-in-time view of the orchestrator."""

    enabled: bool
    subscribed: bool
    active_rules: tuple[ZoneRule, ...]
    notifications_enabled: bool
    show_status_notifications: bool


class MonitorOrchestrator:
    """
    Owns the enable switch, the live subscription and the active rule set.

    Design principles:
    - One lock guards rule evaluation, rule-set swaps and the actuation gate
    - Sink failures are logged, never propagated into evaluation
    - Disable and shutdown are idempotent and never leave a subscription open
    """

    def __init__(
        self,
        source: SampleSource,
        actuation: ActuationSink,
        notifications: NotificationSink | None = None,
        catalog: PatternCatalog | None = None,
        rules: Iterable[ZoneRule] | None = None,
        notifications_enabled: bool = True,
        show_status_notifications: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.actuation = actuation
        self.notifications = notifications
        self.catalog = catalog or PatternCatalog.standard()
        self.logger = logger.bind(component="monitor_orchestrator", source=source.source_name)
        self.stats: Counter[str] = Counter()

        self._engine = AlertEngine(rules if rules is not None else fallback_rules(self.catalog))
        self._gate = ActuationGate()
        self._clock = clock
        self._notifications_enabled = notifications_enabled
        self._show_status_notifications = show_status_notifications

        # _lock: evaluation, rule swaps, gate. _toggle_lock: enable/disable transitions.
        self._lock = asyncio.Lock()
        self._toggle_lock = asyncio.Lock()
        self._enabled = False
        self._subscription: SampleSubscription | None = None
        self._pump: asyncio.Task[None] | None = None
        self._watchers: set[asyncio.Task[None]] = set()
        self._routing_task: asyncio.Task[Any] | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    @property
    def active_rules(self) -> tuple[ZoneRule, ...]:
        return self._engine.rules

    @property
    def state(self) -> MonitorState:
        return MonitorState(
            enabled=self._enabled,
            subscribed=self.subscribed,
            active_rules=self._engine.rules,
            notifications_enabled=self._notifications_enabled,
            show_status_notifications=self._show_status_notifications,
        )

    async def set_enabled(self, enabled: bool) -> None:
        self._reject_sink_reentry("set_enabled")
        if enabled:
            await self._start()
        else:
            await self._stop()

    async def _start(self) -> None:
        async with self._toggle_lock:
            self._enabled = True
            if self._pump is not None and not self._pump.done():
                return

            try:
                subscription = await self.source.subscribe()
            except Exception as e:
                self._enabled = False
                self.logger.exception("sample_subscription_failed", error=str(e))
                return

            self._subscription = subscription
            self._pump = asyncio.create_task(
                self._run(subscription), name=f"monitor-{self.source.source_name}"
            )
            self.logger.info("monitoring_enabled", rules=len(self._engine))

    async def _stop(self) -> None:
        async with self._toggle_lock:
            self._enabled = False
            pump, subscription = self._pump, self._subscription
            self._pump = None
            if pump is None:
                return

            # Holding the lock means no dispatch is in flight when the pump is cancelled.
            async with self._lock:
                pump.cancel()
            await asyncio.wait([pump])

            if subscription is not None:
                await self._release(subscription)
            self.logger.info("monitoring_disabled")

    async def _release(self, subscription: SampleSubscription) -> None:
        if self._subscription is not subscription:
            return
        self._subscription = None
        try:
            await subscription.unsubscribe()
        except Exception as e:
            self.logger.exception("sample_unsubscribe_failed", error=str(e))

    async def _run(self, subscription: SampleSubscription) -> None:
        self.logger.info("sample_stream_started")
        try:
            while True:
                try:
                    event = await anext(subscription)
                except StopAsyncIteration:
                    self.logger.info("sample_stream_ended")
                    break
                except TransientStreamError as e:
                    self.stats["transient_errors"] += 1
                    self.logger.warning("sample_stream_hiccup", error=str(e))
                    continue

                if isinstance(event, AvailabilityChanged):
                    self.logger.info(
                        "sensor_availability_changed", availability=event.availability.value
                    )
                elif isinstance(event, Sample):
                    await self.process_sample(event)
                else:
                    self.logger.warning("unexpected_stream_event", event_type=type(event).__name__)

        except asyncio.CancelledError:
            self.logger.info("sample_stream_cancelled")
            raise
        except Exception as e:
            self.logger.exception("sample_stream_failed", error=str(e))
        finally:
            await self._release(subscription)

    async def process_sample(self, sample: Sample) -> list[FiredAlert]:
        """Evaluate one sample and route whatever fired. Serialized with rule swaps."""
        self._reject_sink_reentry("process_sample")
        async with self._lock:
            self._routing_task = asyncio.current_task()
            try:
                return await self._route(sample)
            finally:
                self._routing_task = None

    async def _route(self, sample: Sample) -> list[FiredAlert]:
        sink = self.notifications
        fired = self._engine.evaluate(sample)
        self.stats["samples_evaluated"] += 1
        self.stats["alerts_fired"] += len(fired)

        for alert in fired:
            await self._actuate(alert)
            if self._notifications_enabled and sink is not None:
                await self._call_sink(
                    "notification_failed",
                    partial(sink.notify, alert.sample, alert.alert_kind),
                    rule=alert.rule.name,
                )

        if self._show_status_notifications and sink is not None:
            status = heart_rate_status(sample.value)
            await self._call_sink(
                "status_notification_failed",
                partial(sink.notify_status, sample, status),
                status=status,
            )

        return fired

    def _reject_sink_reentry(self, operation: str) -> None:
        current = asyncio.current_task()
        if current is not None and current is self._routing_task:
            raise RuntimeError(
                f"{operation} cannot be called from an actuation or notification sink"
            )

    async def _actuate(self, alert: FiredAlert) -> None:
        now = self._clock()
        if not self._gate.try_acquire(alert.pattern, now):
            self.stats["dispatches_skipped"] += 1
            not_before = self._gate.not_before
            self.logger.info(
                "actuation_skipped_device_busy",
                rule=alert.rule.name,
                not_before=not_before.isoformat() if not_before else None,
            )
            return

        self.stats["dispatches"] += 1
        self.logger.info(
            "actuation_dispatched",
            rule=alert.rule.name,
            value=alert.sample.value,
            expected_ms=alert.pattern.session_duration_ms,
        )
        await self._call_sink(
            "actuation_dispatch_failed",
            partial(self.actuation.dispatch, alert.pattern),
            rule=alert.rule.name,
        )

    async def _call_sink(
        self, failure_event: str, call: Callable[[], object], **context: Any
    ) -> bool:
        try:
            result = call()
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            self.stats["sink_failures"] += 1
            self.logger.error(failure_event, error=str(e), **context)
            return False

    def _derive_configuration(
        self, update: ConfigurationUpdate
    ) -> Result[tuple[AlertPreferences, list[ZoneRule]], ConfigurationRejected]:
        try:
            if isinstance(update, AlertProfile):
                preferences = update.to_preferences(self._show_status_notifications)
                rule_name = update.name
            elif isinstance(update, AlertPreferences):
                preferences, rule_name = update, "User Alert"
            elif isinstance(update, Mapping):
                preferences, rule_name = PreferencesUpdate.model_validate(update), "User Alert"
            else:
                return Result.err(
                    ConfigurationRejected(
                        f"Unsupported configuration update: {type(update).__name__}"
                    )
                )
        except ValidationError as e:
            return Result.err(ConfigurationRejected(f"Invalid configuration: {e}", cause=e))

        if preferences.pattern_name not in self.catalog:
            self.logger.warning(
                "unknown_pattern_name",
                pattern_name=preferences.pattern_name,
                fallback=self.catalog.default_entry.name,
            )

        rules = [ZoneRule.from_preferences(preferences, self.catalog, name=rule_name)]
        return Result.ok((preferences, rules))

    async def apply_configuration(
        self, update: ConfigurationUpdate
    ) -> Result[tuple[ZoneRule, ...], ConfigurationRejected]:
        """
        Replace the active rule set with rules derived from `update`.

        A rejected update leaves the previous rules and notification flags in
        place and is reported through the returned Result.
        """
        self._reject_sink_reentry("apply_configuration")
        derived = self._derive_configuration(update)
        if derived.is_err():
            self.stats["configurations_rejected"] += 1
            self.logger.warning("configuration_rejected", error=str(derived.unwrap_err()))
            return Result.err(derived.unwrap_err())

        preferences, rules = derived.unwrap()
        engine = AlertEngine(rules)
        async with self._lock:
            self._engine = engine
            self._notifications_enabled = preferences.notifications_enabled
            self._show_status_notifications = preferences.show_status_notifications

        self.stats["configurations_applied"] += 1
        self.logger.info(
            "configuration_applied",
            rules=[rule.name for rule in engine.rules],
            min_rate=preferences.min_rate,
            max_rate=preferences.max_rate,
            cooldown_seconds=preferences.cooldown_seconds,
            pattern_name=preferences.pattern_name,
        )
        return Result.ok(engine.rules)

    def watch_configuration(self, source: ConfigSource) -> asyncio.Task[None]:
        """Apply every update from `source` in the background until shutdown."""
        task = asyncio.create_task(self._watch(source), name="monitor-config-watch")
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)
        return task

    async def _watch(self, source: ConfigSource) -> None:
        try:
            async for update in source.updates():
                await self.apply_configuration(update)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.exception("configuration_stream_failed", error=str(e))

    def cooldown_status(self, now: datetime | None = None) -> dict[str, float]:
        """
        Remaining cooldown in seconds for each active rule.

        Raises:
            ValidationError: if `now` is a naive datetime.
        """
        now = ensure_aware(now or self._clock())
        return {rule.name: rule.remaining_cooldown(now) for rule in self._engine.rules}

    async def shutdown(self) -> None:
        """Gracefully stop monitoring and configuration watching."""
        await self._stop()

        watchers = list(self._watchers)
        for task in watchers:
            task.cancel()
        if watchers:
            await asyncio.wait(watchers)
        self.logger.info("monitor_shutdown")

    @asynccontextmanager
    async def monitoring_session(self) -> AsyncIterator["MonitorOrchestrator"]:
        """Enable monitoring for the duration of the block, shut down afterwards."""
        await self.set_enabled(True)
        try:
            yield self
        finally:
            await self.shutdown()
