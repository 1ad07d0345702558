"""Outbound adapters."""

from manta_client.adapters.outbound.httpx_transport import HttpxTransport
from manta_client.adapters.outbound.rsa_signer import RsaSha256Signer

__all__ = [
    "HttpxTransport",
    "RsaSha256Signer",
]
