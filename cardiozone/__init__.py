"""Zone-based heart-rate alerting core.

This package contains the alert rule state machine, the waveform catalog and
the monitoring orchestrator that binds a live sample stream to rule evaluation.
"""
