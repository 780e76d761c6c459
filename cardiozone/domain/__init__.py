"""Domain models for zone alerting: samples, waveforms, rules and errors."""
