import logging

from fastapi import FastAPI
from opentelemetry import propagate, trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from product_service.core.config import settings

logger = logging.getLogger(__name__)

_tracer_provider = None


def setup_tracing():
    """Install the global tracer provider and library instrumentation."""
    global _tracer_provider
    if _tracer_provider is not None:
        return _tracer_provider

    try:
        resource = Resource.create({
            "service.name": settings.OTEL_SERVICE_NAME,
            "deployment.environment": settings.ENVIRONMENT,
        })

        tracer_provider = TracerProvider(resource=resource)
        otlp_span_exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(tracer_provider)

        propagate.set_global_textmap(TraceContextTextMapPropagator())
        logger.info("Global textmap propagator set.", extra={"propagator": "TraceContextTextMapPropagator"})

        if settings.INSTRUMENT_PYMONGO:
            PymongoInstrumentor().instrument()
            logger.info("PymongoInstrumentor applied.")

        _tracer_provider = tracer_provider
        logger.info(
            "OpenTelemetry tracing configured.",
            extra={"service_name": settings.OTEL_SERVICE_NAME, "endpoint": settings.OTEL_EXPORTER_OTLP_ENDPOINT},
        )
        return tracer_provider
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing.", extra={"error": str(e)}, exc_info=True)
        raise


def instrument_fastapi_app(app: FastAPI):
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health/live,health/ready")
    logger.info("FastAPIInstrumentor applied to app.")


def shutdown_tracing():
    global _tracer_provider
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
        logger.info("Tracer provider shut down.")
