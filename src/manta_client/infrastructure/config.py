"""Configuration management for the Manta client using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceConfig(BaseSettings):
    """Service endpoint and credentials."""

    model_config = SettingsConfigDict(env_prefix="MANTA_")

    url: str = "https://us-east.manta.joyent.com"
    user: str = ""
    key_id: str = ""  # key fingerprint, e.g. "SHA256:..." or "aa:bb:..."
    key_path: str = "~/.ssh/id_rsa"
    key_content: Optional[str] = None  # PEM, takes precedence over key_path
    key_password: Optional[str] = None


class HttpConfig(BaseSettings):
    """HTTP transport configuration."""

    model_config = SettingsConfigDict(env_prefix="MANTA_HTTP_")

    timeout: float = 20.0  # seconds
    max_connections: int = 24
    read_chunk_size: int = 64 * 1024
    seek_buffer_size: int = 16 * 1024
    verify_tls: bool = True


class ObservabilityConfig(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="MANTA_OBSERVABILITY_")

    log_level: str = "info"
    log_format: str = "json"
    metrics_enabled: bool = True
    tracing_enabled: bool = False
    otlp_endpoint: str = ""
    environment: str = "development"


class Config(BaseSettings):
    """Root configuration for the Manta client."""

    model_config = SettingsConfigDict(
        env_prefix="MANTA_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config()
