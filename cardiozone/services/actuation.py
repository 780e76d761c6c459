"""
Actuation and notification boundary.

The vibration motor is a single shared device. `ActuationGate` is the only
thing preventing overlapping commands: a dispatch is allowed once the
previous pattern's expected duration has elapsed, otherwise it is skipped.
"""

from datetime import datetime, timedelta
from typing import Protocol

import structlog
from rich.console import Console

from cardiozone.domain.models import Sample
from cardiozone.domain.waveform import WaveformPattern

logger = structlog.get_logger(__name__)


class ActuationSink(Protocol):
    """
    Plays a waveform on the device. Fire-and-forget, best-effort; may be async.

    Called while the monitor holds its evaluation lock, so a sink must not
    call back into the orchestrator (`set_enabled`, `apply_configuration`,
    `process_sample`). Such a call raises RuntimeError and is recorded as a
    sink failure.
    """

    def dispatch(self, pattern: WaveformPattern) -> object: ...


class NotificationSink(Protocol):
    """
    Shows user-facing notifications. May be async.

    Same constraint as `ActuationSink`: never call back into the orchestrator.
    """

    def notify(self, sample: Sample, alert_kind: str) -> object: ...

    def notify_status(self, sample: Sample, status: str) -> object: ...


class ActuationGate:
    """Single not-before instant shared by every rule of a monitor."""

    def __init__(self) -> None:
        self._not_before: datetime | None = None

    @property
    def not_before(self) -> datetime | None:
        return self._not_before

    def is_open(self, now: datetime) -> bool:
        return self._not_before is None or now >= self._not_before

    def try_acquire(self, pattern: WaveformPattern, now: datetime) -> bool:
        """Claim the device for `pattern` if it is free; arms the gate on success."""
        if not self.is_open(now):
            return False
        self._not_before = now + timedelta(milliseconds=pattern.session_duration_ms)
        return True


class LoggingActuationSink:
    """Development actuation sink that records each waveform in the log."""

    def __init__(self) -> None:
        self.logger = logger.bind(component="actuation_sink")
        self.dispatched = 0

    def dispatch(self, pattern: WaveformPattern) -> None:
        self.dispatched += 1
        self.logger.info(
            "vibration_started",
            steps=len(pattern.timings),
            repeat_from=pattern.repeat_from,
            expected_ms=pattern.session_duration_ms,
        )


class ConsoleNotificationSink:
    """Development notification sink that prints to the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def notify(self, sample: Sample, alert_kind: str) -> None:
        style = {"High Alert": "bold red", "Medium Alert": "yellow"}.get(alert_kind, "cyan")
        self.console.print(
            f"[{style}]{alert_kind}[/{style}]: {sample.value:.0f} bpm "
            f"at {sample.observed_at.strftime('%H:%M:%S')}"
        )

    def notify_status(self, sample: Sample, status: str) -> None:
        self.console.print(f"[dim]Heart Rate Monitor: {sample.value:.0f} bpm - {status}[/dim]")
