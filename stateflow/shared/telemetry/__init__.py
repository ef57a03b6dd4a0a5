"""Shared telemetry: logging setup, OpenTelemetry config, and tracing helpers."""

from stateflow.shared.telemetry.logging import setup_logging
from stateflow.shared.telemetry.telemetry import TelemetryConfig
from stateflow.shared.telemetry.tracing import (
    TracedOperation,
    add_span_attributes,
    set_span_error,
    traced,
)

__all__ = [
    "setup_logging",
    "TelemetryConfig",
    "traced",
    "add_span_attributes",
    "set_span_error",
    "TracedOperation",
]
