"""Dependency injection container for the Manta client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

import structlog
from opentelemetry import trace

from manta_client.adapters.outbound.httpx_transport import HttpxTransport
from manta_client.adapters.outbound.rsa_signer import RsaSha256Signer
from manta_client.application.client import MantaClient
from manta_client.application.request_executor import SignedRequestExecutor
from manta_client.domain.exceptions import InvalidArgumentError
from manta_client.domain.value_objects.paths import home_directory
from manta_client.infrastructure.config import Config, get_config
from manta_client.infrastructure.logging import setup_logging
from manta_client.infrastructure.metrics import ClientMetrics, get_metrics
from manta_client.infrastructure.tracing import setup_tracing
from manta_client.ports.outbound import HttpTransportPort, SignerPort


@dataclass
class Container:
    """Dependency injection container for client components."""

    config: Config
    logger: structlog.stdlib.BoundLogger
    tracer: trace.Tracer
    metrics: Optional[ClientMetrics]
    executor: SignedRequestExecutor
    client: MantaClient

    _instance: ClassVar[Optional["Container"]] = None

    @classmethod
    def create(
        cls,
        transport: Optional[HttpTransportPort] = None,
        signer: Optional[SignerPort] = None,
    ) -> "Container":
        """Create and initialize the container with all dependencies.

        Args:
            transport: Transport override; httpx from config if None.
            signer: Signer override; RSA key from config if None.
        """
        if cls._instance is not None:
            return cls._instance

        config = get_config()
        if not config.service.user:
            raise InvalidArgumentError("Manta user must be specified (MANTA_USER)")

        logger = setup_logging(config.observability.log_level, config.observability.log_format)
        tracer = setup_tracing(config)
        metrics = get_metrics() if config.observability.metrics_enabled else None

        executor = SignedRequestExecutor(
            config.service.url,
            transport or HttpxTransport.from_config(config.http),
            signer or RsaSha256Signer.from_config(config.service),
            timeout=config.http.timeout,
            metrics=metrics,
            tracer=tracer,
        )
        client = MantaClient(
            executor,
            home_directory(config.service.user),
            stream_buffer_size=config.http.seek_buffer_size,
            metrics=metrics,
        )

        cls._instance = cls(
            config=config,
            logger=logger,
            tracer=tracer,
            metrics=metrics,
            executor=executor,
            client=client,
        )

        logger.info(
            "manta_client_container_initialized",
            environment=config.observability.environment,
            endpoint=config.service.url,
            home=client.home,
        )

        return cls._instance

    @classmethod
    def get(cls) -> "Container":
        """Get the singleton container instance."""
        if cls._instance is None:
            return cls.create()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the container, closing the client (useful for testing)."""
        if cls._instance is not None:
            cls._instance.client.close()
        cls._instance = None


def get_container() -> Container:
    """Get the dependency injection container."""
    return Container.get()
