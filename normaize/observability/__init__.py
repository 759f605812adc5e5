"""
Logging, metrics and per-operation telemetry.
"""
