"""Prometheus metrics for the Manta client."""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram


class ClientMetrics:
    """Metrics collector for client-side requests and job operations."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        # Requests
        self.requests_total = Counter(
            "manta_client_requests_total",
            "Total requests sent to the service",
            ["method", "status"],
            registry=registry,
        )
        self.request_latency = Histogram(
            "manta_client_request_latency_seconds",
            "Time until response headers were received",
            ["method"],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
            registry=registry,
        )
        self.request_errors = Counter(
            "manta_client_request_errors_total",
            "Total failed requests",
            ["method", "error_type"],
            registry=registry,
        )

        # Connections
        self.open_responses = Gauge(
            "manta_client_open_responses",
            "Responses holding a pooled connection",
            registry=registry,
        )
        self.range_requests = Counter(
            "manta_client_range_requests_total",
            "Ranged GET requests opened by seekable readers",
            registry=registry,
        )

        # Jobs
        self.job_operations = Counter(
            "manta_client_job_operations_total",
            "Total job operations",
            ["operation"],
            registry=registry,
        )
        self.job_archive_fallbacks = Counter(
            "manta_client_job_archive_fallbacks_total",
            "Job status lookups answered from the archive",
            registry=registry,
        )


_metrics: ClientMetrics | None = None


def get_metrics() -> ClientMetrics:
    """Get the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = ClientMetrics()
    return _metrics
