"""
End-to-end walkthrough of the zone monitoring pipeline.

This script exercises:
1. Configuration loading and validation
2. The haptic pattern catalog
3. A scripted monitoring session with zone entry, cooldown and exit
4. Live reconfiguration while the stream is running
5. Error handling: flaky sensor, rejected configuration, failing sinks

Run with: uv run python demo_monitor.py
"""

import asyncio
import random

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cardiozone.config import configure_logging, get_config, print_config_summary, validate_config
from cardiozone.domain.models import AlertProfile, Sample, standard_presets
from cardiozone.domain.waveform import PatternCatalog, WaveformPattern
from cardiozone.services.actuation import ConsoleNotificationSink, LoggingActuationSink
from cardiozone.services.monitor import MonitorOrchestrator, QueueConfigSource
from cardiozone.services.sample_stream import SimulatedHeartRateSource

console = Console()


def _stats_table(title: str, monitor: MonitorOrchestrator) -> Table:
    table = Table(title=title)
    table.add_column("Counter", style="cyan")
    table.add_column("Value", style="white")
    for key in (
        "samples_evaluated",
        "alerts_fired",
        "dispatches",
        "dispatches_skipped",
        "transient_errors",
        "configurations_applied",
        "configurations_rejected",
        "sink_failures",
    ):
        table.add_row(key, str(monitor.stats[key]))
    return table


async def check_configuration() -> bool:
    """Load configuration and set up logging."""

    console.print(Panel("🔧 Configuration", style="blue"))

    try:
        validate_config()
        config = get_config()
        configure_logging(config.logging)
        print_config_summary()
        return True

    except Exception as e:
        console.print(f"❌ Configuration check failed: {e}", style="red")
        return False


async def check_pattern_catalog() -> bool:
    """List the catalog the way a settings screen would."""

    console.print(Panel("📳 Haptic Patterns", style="blue"))

    catalog = PatternCatalog.standard()
    table = Table(title="Available Patterns")
    table.add_column("Name", style="cyan")
    table.add_column("Label", style="magenta")
    table.add_column("Steps", style="green")
    table.add_column("Duration", style="yellow")

    for name, label, pattern in catalog.entries():
        table.add_row(name, label, str(len(pattern.timings)), f"{pattern.session_duration_ms} ms")

    console.print(table)
    return catalog.lookup("no-such-pattern") == catalog.lookup("SHORT")


async def check_scripted_session() -> bool:
    """Walk through warm-up, a sustained cardio zone and a cool-down."""

    console.print(Panel("💓 Scripted Session", style="blue"))

    script = [72, 85, 98, 104, 112, 118, 121, 125, 130, 128, 119, 95, 88]
    source = SimulatedHeartRateSource("scripted-hr", interval_seconds=0.05, script=script)
    monitor = MonitorOrchestrator(
        source, LoggingActuationSink(), ConsoleNotificationSink(console)
    )

    result = await monitor.apply_configuration(AlertProfile.cardio())
    if result.is_err():
        console.print(f"❌ {result.unwrap_err()}", style="red")
        return False

    async with monitor.monitoring_session():
        while monitor.subscribed:
            await asyncio.sleep(0.05)

    console.print(_stats_table("Session Summary", monitor))
    return monitor.stats["samples_evaluated"] == len(script)


async def check_live_reconfiguration() -> bool:
    """Swap profiles while the simulated sensor keeps streaming."""

    console.print(Panel("🔁 Live Reconfiguration", style="blue"))

    config = get_config()
    source = SimulatedHeartRateSource(
        "live-hr",
        baseline_bpm=config.monitoring.simulated_baseline_bpm,
        interval_seconds=0.02,
        failure_rate=0.0,
        rng=random.Random(7),
    )
    monitor = MonitorOrchestrator(source, LoggingActuationSink(), ConsoleNotificationSink(console))
    updates = QueueConfigSource()
    monitor.watch_configuration(updates)

    async with monitor.monitoring_session():
        updates.publish(config.alerts.to_preferences(config.monitoring))
        for profile in standard_presets():
            await asyncio.sleep(0.2)
            updates.publish(profile)
            console.print(f"Applied profile: {profile.name}", style="yellow")
        await asyncio.sleep(0.2)

    console.print(_stats_table("Reconfiguration Summary", monitor))
    return monitor.stats["configurations_applied"] == len(standard_presets()) + 1


class _BrokenActuator:
    def dispatch(self, pattern: WaveformPattern) -> None:
        raise RuntimeError("vibrator busy")


async def check_error_handling() -> bool:
    """Flaky sensor, malformed configuration and a failing actuator."""

    console.print(Panel("🛡️ Error Handling", style="blue"))

    source = SimulatedHeartRateSource(
        "flaky-hr", interval_seconds=0.01, failure_rate=0.3, rng=random.Random(3)
    )
    monitor = MonitorOrchestrator(source, _BrokenActuator(), ConsoleNotificationSink(console))

    rejected = await monitor.apply_configuration({"min_rate": 150, "max_rate": 90})
    async with monitor.monitoring_session():
        await monitor.process_sample(Sample(value=140.0))
        await asyncio.sleep(0.3)

    console.print(_stats_table("Error Handling Summary", monitor))
    return (
        rejected.is_err()
        and monitor.stats["transient_errors"] > 0
        and monitor.stats["sink_failures"] > 0
        and not monitor.subscribed
    )


async def run_all_checks() -> None:
    console.print(Panel("🫀 Zone Monitor - System Walkthrough", style="bold blue"))

    checks = [
        ("Configuration", check_configuration),
        ("Pattern Catalog", check_pattern_catalog),
        ("Scripted Session", check_scripted_session),
        ("Live Reconfiguration", check_live_reconfiguration),
        ("Error Handling", check_error_handling),
    ]

    results = []
    for name, check in checks:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, await check()))
        except Exception as e:
            console.print(f"❌ {name} failed with exception: {e}", style="red")
            results.append((name, False))

    console.print(f"\n{'=' * 60}")
    summary_table = Table(title="Results")
    summary_table.add_column("Check", style="cyan")
    summary_table.add_column("Result", style="white")

    passed = 0
    for name, ok in results:
        summary_table.add_row(name, "✅ PASSED" if ok else "❌ FAILED")
        passed += int(ok)

    console.print(summary_table)
    console.print(f"\n🎯 Results: {passed}/{len(results)} checks passed")


if __name__ == "__main__":
    try:
        asyncio.run(run_all_checks())
    except KeyboardInterrupt:
        console.print("\n👋 Stopped by user", style="yellow")
