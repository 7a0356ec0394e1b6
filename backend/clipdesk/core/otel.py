"""OpenTelemetry wiring: OTLP traces, metrics and logs plus library instrumentation

Everything here is a no-op when OTEL_EXPORTER_OTLP_ENDPOINT is unset, so local
runs and tests never try to reach a collector.
"""
import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from clipdesk.core.config import settings

logger = logging.getLogger(__name__)

TRACER_NAME = "clipdesk"
METRIC_EXPORT_INTERVAL_MS = 15000


def otel_enabled() -> bool:
    return bool(settings.OTEL_EXPORTER_OTLP_ENDPOINT)


def _resource() -> Resource:
    return Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.version": "1.0.0",
        "deployment.environment": settings.OTEL_ENVIRONMENT,
    })


def _exporter_options() -> dict:
    # Collector runs as a sidecar on the private network
    return {"endpoint": settings.OTEL_EXPORTER_OTLP_ENDPOINT, "insecure": True}


def initialize_otel() -> bool:
    """Install tracer and meter providers exporting over OTLP/gRPC

    Returns False (and leaves the API no-op providers in place) when no
    collector endpoint is configured or the exporters cannot be built.
    """
    if not otel_enabled():
        return False

    try:
        resource = _resource()

        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**_exporter_options())))
        trace.set_tracer_provider(tracer_provider)

        reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(**_exporter_options()),
            export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))
    except Exception as e:
        logger.warning(f"OpenTelemetry setup failed, continuing without export: {e}")
        return False
    return True


def setup_otel_logging() -> bool:
    """Ship stdlib log records to the collector alongside the console output"""
    if not otel_enabled():
        return False

    try:
        from opentelemetry._logs import set_logger_provider
        from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
        from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
        from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

        provider = LoggerProvider(resource=_resource())
        provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter(**_exporter_options())))
        set_logger_provider(provider)
        logging.getLogger().addHandler(LoggingHandler(level=logging.NOTSET, logger_provider=provider))
    except Exception as e:
        logger.warning(f"OTLP log export unavailable: {e}")
        return False
    return True


def instrument_database(engine) -> None:
    """Emit a span per SQL statement issued through the store's engine"""
    try:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    except Exception as e:
        logger.warning(f"SQLAlchemy instrumentation unavailable: {e}")
        return
    logger.info("SQLAlchemy instrumentation enabled")


def get_tracer():
    """Tracer for workflow spans (remote publishes, deletions)"""
    return trace.get_tracer(TRACER_NAME)
