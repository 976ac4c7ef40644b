"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "reservation-core"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
HOLDS_CREATED = Counter(
    'reservation_holds_created_total',
    'Total holds created',
    ['currency'],
    registry=REGISTRY
)

HOLDS_EXPIRED = Counter(
    'reservation_holds_expired_total',
    'Total holds cancelled because they lapsed',
    ['path'],
    registry=REGISTRY
)

BOOKINGS_CONFIRMED = Counter(
    'reservation_bookings_confirmed_total',
    'Total bookings confirmed',
    registry=REGISTRY
)

BOOKINGS_PAID = Counter(
    'reservation_bookings_paid_total',
    'Total bookings marked as paid',
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'reservation_bookings_cancelled_total',
    'Total bookings cancelled',
    ['previous_status'],
    registry=REGISTRY
)

INVENTORY_REJECTIONS = Counter(
    'reservation_inventory_rejections_total',
    'Reservations refused for lack of capacity',
    ['unit_type'],
    registry=REGISTRY
)

INVENTORY_RELEASE_ANOMALIES = Counter(
    'reservation_inventory_release_anomalies_total',
    'Releases that would have pushed inventory past its total',
    ['unit_type'],
    registry=REGISTRY
)

SEQUENCE_CORRUPTIONS = Counter(
    'reservation_sequence_corruptions_total',
    'Allocated reservation codes that were already in use',
    registry=REGISTRY
)

TRANSACTION_RETRIES = Counter(
    'reservation_transaction_retries_total',
    'Transaction attempts retried after a conflict or timeout',
    ['operation', 'reason'],
    registry=REGISTRY
)

QUOTES = Counter(
    'reservation_quotes_total',
    'Price quotes by outcome',
    ['outcome'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())

    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the SQLAlchemy engine with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration_seconds: float):
        """Record one served HTTP request."""
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration_seconds)

    @staticmethod
    def record_hold_created(currency: str):
        """Record a hold creation."""
        HOLDS_CREATED.labels(currency=currency).inc()

    @staticmethod
    def record_hold_expired(path: str):
        """Record a lapsed hold cancelled on read, on confirm, or by the sweep."""
        HOLDS_EXPIRED.labels(path=path).inc()

    @staticmethod
    def record_booking_confirmed():
        BOOKINGS_CONFIRMED.inc()

    @staticmethod
    def record_booking_paid():
        BOOKINGS_PAID.inc()

    @staticmethod
    def record_booking_cancelled(previous_status: str):
        BOOKINGS_CANCELLED.labels(previous_status=previous_status).inc()

    @staticmethod
    def record_inventory_rejection(unit_type: str):
        INVENTORY_REJECTIONS.labels(unit_type=unit_type).inc()

    @staticmethod
    def record_release_anomaly(unit_type: str):
        INVENTORY_RELEASE_ANOMALIES.labels(unit_type=unit_type).inc()

    @staticmethod
    def record_sequence_corruption():
        SEQUENCE_CORRUPTIONS.inc()

    @staticmethod
    def record_transaction_retry(operation: str, reason: str):
        TRANSACTION_RETRIES.labels(operation=operation, reason=reason).inc()

    @staticmethod
    def record_quote(outcome: str):
        QUOTES.labels(outcome=outcome).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logger with business context."""

    def __init__(self, logger):
        self.logger = logger

    def info(self, message: str, **kwargs):
        """Log info message with context."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with context."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with context."""
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with context; used for conditions that need an operator."""
        self.logger.critical(message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with context."""
        self.logger.debug(message, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(structlog.get_logger(name))
