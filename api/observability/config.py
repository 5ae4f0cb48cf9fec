"""
OpenTelemetry Configuration

Tracer provider and log level setup for the tourist safety registry API.
Tracing stays on the no-op global provider under test or when OTEL_ENABLED
is false; spans created by the service layer then cost nothing.
"""

import os
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

SERVICE_NAME = 'tourist-safety-registry'

# Fraction of root traces kept per environment
SAMPLING_RATIOS = {
    'production': 0.1,
    'staging': 0.5,
}

LOG_LEVELS = {
    'production': logging.WARNING,
    'staging': logging.INFO,
    'development': logging.DEBUG,
    'test': logging.WARNING
}

# Alert and missing-person events stay visible even where the root level is WARNING
BUSINESS_LOGGERS = ('domain', 'services')

_provider_installed = False


def setup_observability(environment: str = None, otel_enabled: bool = None) -> bool:
    """
    Configure logging and, when enabled, install the SDK tracer provider.

    Args:
        environment: Deployment environment; read from ENVIRONMENT if omitted
        otel_enabled: Tracing switch; read from OTEL_ENABLED if omitted

    Returns:
        True if this call installed a tracer provider
    """
    global _provider_installed

    environment = environment or os.getenv('ENVIRONMENT', 'development')
    if otel_enabled is None:
        otel_enabled = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

    setup_structured_logging(environment)

    if not otel_enabled or environment == 'test' or _provider_installed:
        return False

    resource = Resource.create({
        "service.name": os.getenv('OTEL_SERVICE_NAME', SERVICE_NAME),
        "service.version": os.getenv('SERVICE_VERSION', '1.0.0'),
        "deployment.environment": environment
    })
    tracer_provider = TracerProvider(
        sampler=ParentBased(TraceIdRatioBased(SAMPLING_RATIOS.get(environment, 1.0))),
        resource=resource
    )

    otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
    if otlp_endpoint:
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint), max_export_batch_size=512)
        )
    elif environment == 'development':
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(tracer_provider)
    _provider_installed = True

    logging.getLogger(__name__).info(
        "Tracing enabled",
        extra={"environment": environment, "otlp_endpoint": otlp_endpoint}
    )
    return True


def setup_structured_logging(environment: str):
    """Set the root log level for the environment."""
    log_level = LOG_LEVELS.get(environment, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s'
    )

    if environment == 'production':
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        for name in BUSINESS_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)
    elif environment == 'development':
        for name in BUSINESS_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)
