"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.

Settings are read once at process start and are immutable afterwards.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Redis (registry store and inbound event stream)
    redis_url: str = "redis://localhost:6379"
    redis_pool_max_connections: int = 50
    redis_socket_timeout: int = 5  # Socket timeout in seconds (connect and read/write)

    # Inbound event stream
    stream_name: str = "fanout:events"
    stream_consumer_group: str = "fanout-dispatchers"
    stream_consumer_name: str = "fanout-primary"
    stream_batch_size: int = 100  # Max entries per XREADGROUP call
    stream_block_ms: int = 2000  # Blocking wait per read
    stream_consumer_enabled: bool = True

    # Connection registry
    connection_table: str = "fanout:connections"  # Key prefix for connection records
    registry_backend: str = "redis"  # "redis" or "memory"
    # Passive expiry for registry hygiene; 0 disables the TTL.
    # 2 hours matches the maximum lifetime of a managed WebSocket connection.
    connection_ttl_seconds: int = 7200
    registry_snapshot_scope: str = "batch"  # "batch" or "event"

    # Push gateway
    gateway_mode: str = "http"  # "http" (management API) or "local" (in-process WebSockets)
    api_gateway_endpoint: str = ""  # e.g. https://abc123.execute-api.us-east-1.amazonaws.com/dev
    gateway_timeout: float = 5.0
    gateway_max_connections: int = 100

    # Fan-out
    fanout_max_concurrent_pushes: int = 50

    # Server
    fanout_port: int = 8001
    allowed_origins: str = ""  # Comma-separated list; empty allows localhost defaults

    # Environment
    environment: str = "development"
    debug: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        frozen = True

    def validate_runtime(self) -> list[str]:
        """
        Validate that the configuration can run.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.registry_backend not in ("redis", "memory"):
            errors.append(
                f"REGISTRY_BACKEND must be 'redis' or 'memory', got '{self.registry_backend}'"
            )

        if self.gateway_mode not in ("http", "local"):
            errors.append(
                f"GATEWAY_MODE must be 'http' or 'local', got '{self.gateway_mode}'"
            )

        if self.gateway_mode == "http" and not self.api_gateway_endpoint:
            errors.append("API_GATEWAY_ENDPOINT must be set when GATEWAY_MODE is 'http'")

        # Local socket ids are only reachable from the process that owns them
        if self.gateway_mode == "local" and self.registry_backend == "redis":
            errors.append("GATEWAY_MODE=local requires REGISTRY_BACKEND=memory")

        if self.registry_snapshot_scope not in ("batch", "event"):
            errors.append(
                f"REGISTRY_SNAPSHOT_SCOPE must be 'batch' or 'event', got '{self.registry_snapshot_scope}'"
            )

        if self.fanout_max_concurrent_pushes < 1:
            errors.append("FANOUT_MAX_CONCURRENT_PUSHES must be at least 1")

        if self.connection_ttl_seconds < 0:
            errors.append("CONNECTION_TTL_SECONDS must not be negative")

        if self.environment == "production":
            # The in-memory registry does not survive restarts and is per-process
            if self.registry_backend == "memory":
                errors.append("REGISTRY_BACKEND=memory is not allowed in production")

            if self.debug:
                errors.append("DEBUG must be False in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()