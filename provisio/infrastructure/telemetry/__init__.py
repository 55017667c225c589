"""
Provisio Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for observability
- Phase duration metrics and batch traces
"""

from provisio.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
