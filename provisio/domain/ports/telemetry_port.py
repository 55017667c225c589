"""
Telemetry Port

Architectural Intent:
- Port for recording provisioning metrics and traces
- Implemented by the OpenTelemetry exporter
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class TelemetryPort(Protocol):
    def record_phase(
        self, machine: str, phase: str, duration_ms: float, success: bool
    ) -> None: ...

    def record_batch(self, batch: str, total: int, failed: int) -> None: ...

    def start_span(
        self, name: str, attributes: Optional[dict[str, str]] = None
    ) -> Optional[Any]: ...

    def end_span(self, span: Any) -> None: ...
