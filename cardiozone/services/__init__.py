"""
Core services for zone monitoring.

This package contains the evaluation engine, the sample stream boundary,
actuation routing and the monitoring orchestrator.
"""

from .actuation import ActuationGate, ActuationSink, NotificationSink
from .alert_engine import AlertEngine, FiredAlert
from .monitor import ConfigSource, MonitorOrchestrator, MonitorState, QueueConfigSource
from .sample_stream import (
    QueueSampleSubscription,
    SampleSource,
    SampleSubscription,
    SimulatedHeartRateSource,
)

__all__ = [
    "ActuationGate",
    "ActuationSink",
    "NotificationSink",
    "AlertEngine",
    "FiredAlert",
    "ConfigSource",
    "MonitorOrchestrator",
    "MonitorState",
    "QueueConfigSource",
    "QueueSampleSubscription",
    "SampleSource",
    "SampleSubscription",
    "SimulatedHeartRateSource",
]
