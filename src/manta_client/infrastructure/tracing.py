"""OpenTelemetry tracing configuration for the Manta client."""

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from manta_client.infrastructure.config import Config, get_config


def setup_tracing(config: Config | None = None) -> trace.Tracer:
    """Configure OpenTelemetry tracing for the client.

    With tracing disabled the globally configured (by default no-op)
    tracer is returned, leaving the host application's setup alone.
    """
    config = config or get_config()

    if not config.observability.tracing_enabled:
        return get_tracer()

    resource = Resource.create(
        {
            "service.name": "manta_client",
            "service.version": "0.1.0",
            "deployment.environment": config.observability.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    if config.observability.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(
            endpoint=config.observability.otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    else:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)

    return get_tracer()


def get_tracer(name: str = "manta_client") -> trace.Tracer:
    """Get a tracer instance."""
    return trace.get_tracer(name)
