"""Infrastructure layer - cross-cutting concerns."""

from manta_client.infrastructure.config import Config, get_config
from manta_client.infrastructure.logging import setup_logging, get_logger
from manta_client.infrastructure.metrics import ClientMetrics, get_metrics
from manta_client.infrastructure.tracing import setup_tracing, get_tracer

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "ClientMetrics",
    "get_metrics",
    "setup_tracing",
    "get_tracer",
]
