"""OpenTelemetry tracing and metrics for REST calls and dashboard loads."""

import logging
import os
import time
from contextlib import contextmanager

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from .config import TelemetryConfig

logger = logging.getLogger(__name__)


class TelemetryManager:
    """
    Owns the tracer and meter used by the client and the dashboard.

    Exporters are attached only when the matching ``OTEL_EXPORTER_OTLP_*_ENDPOINT``
    variable is set; otherwise spans stay in-process for whatever processor the
    host registers.
    """

    def __init__(self, config: TelemetryConfig):
        self.config = config
        self.tracer: trace.Tracer | None = None
        self.meter: metrics.Meter | None = None
        self._initialized = False

        self._api_call_counter = None
        self._api_call_duration = None
        self._error_counter = None
        self._auth_counter = None
        self._dashboard_load_counter = None
        self._dashboard_load_duration = None
        self._enrichment_failure_counter = None

        if config.enabled:
            self._setup_telemetry()

    def _setup_telemetry(self):
        try:
            resource = Resource(
                attributes={
                    ResourceAttributes.SERVICE_NAME: self.config.service_name,
                    ResourceAttributes.SERVICE_VERSION: self.config.service_version,
                    ResourceAttributes.PROCESS_PID: os.getpid(),
                }
            )

            self._setup_tracing(resource)

            if self.config.metrics_enabled:
                self._setup_metrics(resource)

            RequestsInstrumentor().instrument()

            self._initialized = True
            logger.info("Telemetry initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize telemetry: {e}")
            self.config.enabled = False

    def _setup_tracing(self, resource: Resource):
        current_provider = trace.get_tracer_provider()
        if hasattr(current_provider, "add_span_processor"):
            # An SDK provider is already installed (e.g. by the test harness); reuse it
            tracer_provider = current_provider
        else:
            tracer_provider = TracerProvider(
                resource=resource, sampler=TraceIdRatioBased(self.config.trace_sampling_rate)
            )
            trace.set_tracer_provider(tracer_provider)

        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        if otlp_endpoint:
            tracer_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )

        self.tracer = trace.get_tracer(__name__)

    def _setup_metrics(self, resource: Resource):
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT")
        if otlp_endpoint:
            metric_reader = PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(endpoint=otlp_endpoint),
                export_interval_millis=30000,
            )
            metrics.set_meter_provider(
                MeterProvider(resource=resource, metric_readers=[metric_reader])
            )

        self.meter = metrics.get_meter(__name__)
        self._create_metrics()

    def _create_metrics(self):
        if not self.meter:
            return

        self._api_call_counter = self.meter.create_counter(
            name="ado_api_calls_total", description="Total number of ADO API calls", unit="1"
        )
        self._api_call_duration = self.meter.create_histogram(
            name="ado_api_call_duration_seconds",
            description="Duration of ADO API calls in seconds",
            unit="s",
        )
        self._error_counter = self.meter.create_counter(
            name="ado_errors_total", description="Total number of errors", unit="1"
        )
        self._auth_counter = self.meter.create_counter(
            name="ado_auth_attempts_total",
            description="Total number of authentication attempts",
            unit="1",
        )
        self._dashboard_load_counter = self.meter.create_counter(
            name="ado_dashboard_loads_total",
            description="Pipeline dashboard aggregations by outcome",
            unit="1",
        )
        self._dashboard_load_duration = self.meter.create_histogram(
            name="ado_dashboard_load_duration_seconds",
            description="Wall-clock time of one dashboard aggregation",
            unit="s",
        )
        self._enrichment_failure_counter = self.meter.create_counter(
            name="ado_dashboard_enrichment_failures_total",
            description="Enrichment steps that failed and were isolated",
            unit="1",
        )

    @contextmanager
    def trace_api_call(self, operation: str, **attributes):
        """
        Open an ``ado_<operation>`` span and record call metrics around the block.

        Args:
            operation: Name of the operation
            **attributes: Additional span attributes
        """
        if not self._initialized or not self.tracer:
            yield None
            return

        with self.tracer.start_as_current_span(f"ado_{operation}") as span:
            span.set_attribute("ado.operation", operation)
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)

            start_time = time.time()
            try:
                yield span
                if self._api_call_counter:
                    self._api_call_counter.add(1, {"operation": operation, "status": "success"})

            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))

                if self._error_counter:
                    self._error_counter.add(
                        1, {"operation": operation, "error_type": type(e).__name__}
                    )
                if self._api_call_counter:
                    self._api_call_counter.add(1, {"operation": operation, "status": "error"})
                raise

            finally:
                if self._api_call_duration:
                    self._api_call_duration.record(
                        time.time() - start_time, {"operation": operation}
                    )

    def record_auth_attempt(self, method: str, success: bool):
        if not self._initialized or not self._auth_counter:
            return
        self._auth_counter.add(1, {"method": method, "success": str(success).lower()})

    def record_dashboard_load(self, success: bool, pipeline_count: int, duration_seconds: float):
        """Record one finished aggregation."""
        if not self._initialized or not self._dashboard_load_counter:
            return
        self._dashboard_load_counter.add(1, {"success": str(success).lower()})
        self._dashboard_load_duration.record(
            duration_seconds, {"pipelines": str(min(pipeline_count, 100))}
        )

    def record_enrichment_failure(self, step: str):
        """Record one fault-isolated enrichment step."""
        if not self._initialized or not self._enrichment_failure_counter:
            return
        self._enrichment_failure_counter.add(1, {"step": step})

    def add_correlation_id(self, correlation_id: str):
        if not self._initialized:
            return

        current_span = trace.get_current_span()
        if current_span:
            current_span.set_attribute("correlation_id", correlation_id)

    def shutdown(self):
        """Shutdown telemetry providers."""
        if not self._initialized:
            return

        try:
            provider = trace.get_tracer_provider()
            if hasattr(provider, "shutdown"):
                provider.shutdown()

            provider = metrics.get_meter_provider()
            if hasattr(provider, "shutdown"):
                provider.shutdown()

            logger.info("Telemetry shutdown complete")

        except Exception as e:
            logger.error(f"Error during telemetry shutdown: {e}")


_telemetry_manager: TelemetryManager | None = None


def initialize_telemetry(config: TelemetryConfig) -> TelemetryManager:
    """Create the process-wide telemetry manager."""
    global _telemetry_manager
    _telemetry_manager = TelemetryManager(config)
    return _telemetry_manager


def get_telemetry_manager() -> TelemetryManager | None:
    return _telemetry_manager


def shutdown_telemetry():
    """Shutdown the global telemetry manager."""
    global _telemetry_manager
    if _telemetry_manager:
        _telemetry_manager.shutdown()
        _telemetry_manager = None
