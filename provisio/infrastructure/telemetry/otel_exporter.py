"""
OpenTelemetry Exporter for Provisio

Architectural Intent:
- Exports provisioning telemetry to OTLP-compatible backends
- Phase durations (allocate, ready, stop, delete) and batch outcomes
- Traces one span per batch run

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
- Validation in __post_init__ prevents accidental plaintext export
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
from datetime import datetime, UTC

logger = logging.getLogger(__name__)


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "provisio"
    environment: str = "development"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://. "
                    "Set insecure=True to explicitly allow plaintext export."
                )


class OTELExporter:
    """
    OpenTelemetry exporter for provisioning runs.

    Metrics are always buffered locally; with an endpoint configured they
    are also recorded on OTLP histograms and counters.
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._instruments: dict[str, Any] = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def buffered_metrics(self) -> list[dict[str, Any]]:
        return list(self._metrics_buffer)

    async def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
            from opentelemetry import metrics
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )

            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    "environment": self.config.environment,
                }
            )

            if self.config.enable_traces:
                trace.set_tracer_provider(TracerProvider(resource=resource))
                span_processor = BatchSpanProcessor(
                    OTLPSpanExporter(
                        endpoint=self.config.endpoint, insecure=self.config.insecure
                    )
                )
                trace.get_tracer_provider().add_span_processor(span_processor)

            if self.config.enable_metrics:
                metric_reader = PeriodicExportingMetricReader(
                    OTLPMetricExporter(
                        endpoint=self.config.endpoint, insecure=self.config.insecure
                    )
                )
                provider = MeterProvider(
                    resource=resource, metric_readers=[metric_reader]
                )
                metrics.set_meter_provider(provider)
                self._meter = metrics.get_meter(__name__)

            self._initialized = True

        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            self._initialized = False

    def _instrument(self, name: str, kind: str, unit: str = "") -> Any:
        """Get or create a histogram or counter for a metric name."""
        if name not in self._instruments and self._meter:
            if kind == "histogram":
                self._instruments[name] = self._meter.create_histogram(name, unit=unit)
            else:
                self._instruments[name] = self._meter.create_counter(name, unit=unit)
        return self._instruments.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
        kind: str = "histogram",
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        if self._initialized:
            instrument = self._instrument(name, kind, unit)
            if instrument is None:
                return
            if kind == "histogram":
                instrument.record(value, attributes=attributes or {})
            else:
                instrument.add(value, attributes=attributes or {})

    def record_phase(
        self,
        machine: str,
        phase: str,
        duration_ms: float,
        success: bool,
    ) -> None:
        """Record how long one lifecycle phase took for one machine."""
        self.record_metric(
            "provisio.phase.duration_ms",
            duration_ms,
            unit="ms",
            attributes={
                "machine": machine,
                "phase": phase,
                "success": str(success),
            },
        )

    def record_batch(self, batch: str, total: int, failed: int) -> None:
        """Record the outcome counts of a batch run."""
        self.record_metric(
            "provisio.batch.machines",
            float(total),
            attributes={"batch": batch},
            kind="counter",
        )
        self.record_metric(
            "provisio.batch.failures",
            float(failed),
            attributes={"batch": batch},
            kind="counter",
        )

    def start_span(
        self,
        name: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """Start a tracing span."""
        if not self._initialized:
            return None

        from opentelemetry import trace

        tracer = trace.get_tracer(__name__)
        return tracer.start_span(name, attributes=attributes or {})

    def end_span(self, span: Any) -> None:
        """End a tracing span."""
        if span:
            span.end()

    async def export(self) -> None:
        """Export buffered telemetry via OTLP."""
        if not self._initialized:
            return

        # With the OTEL SDK initialized, metrics are auto-exported
        # via PeriodicExportingMetricReader. We just clear our local buffer.
        exported_count = len(self._metrics_buffer)
        self._metrics_buffer.clear()

        if exported_count:
            logger.debug("Flushed %d buffered metrics", exported_count)


async def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "provisio",
    insecure: bool = False,
) -> OTELExporter:
    """Factory function to create OTEL exporter."""
    config = OTELConfig(
        endpoint=endpoint or "",
        service_name=service_name,
        insecure=insecure,
    )
    exporter = OTELExporter(config)
    await exporter.initialize()
    return exporter
