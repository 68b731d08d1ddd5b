"""OpenTelemetry configuration for TripFood."""

import sys

from opentelemetry import trace
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import Settings
from .logging_config import get_logger

logger = get_logger(__name__)


def setup_telemetry(app_settings: Settings) -> bool:
    """Configure OpenTelemetry tracing for record store operations.

    Returns:
        True if a tracer provider was installed
    """
    if not app_settings.enable_telemetry:
        return False

    # Skip telemetry setup during tests
    if "pytest" in sys.modules:
        logger.info("Skipping OpenTelemetry setup during tests")
        return False

    try:
        resource = Resource.create(
            {"service.name": app_settings.app_name, "service.version": app_settings.version}
        )
        tracer_provider = TracerProvider(resource=resource)

        # Console exporter until a collector is configured
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(tracer_provider)

        SQLAlchemyInstrumentor().instrument()
        logger.info("SQLAlchemy instrumentation enabled")
    except Exception as e:
        logger.error(f"Failed to setup OpenTelemetry: {e}")
        return False

    logger.info("OpenTelemetry tracing setup completed")
    return True
