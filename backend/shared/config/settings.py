"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # Server
    signal_gateway_host: str = "0.0.0.0"
    signal_gateway_port: int = 3001

    # Comma-separated list of allowed origins, "*" accepts any origin
    allowed_origins: str = "*"

    # Liveness monitor
    liveness_interval: float = 60.0  # Seconds between sweeps
    liveness_timeout: float = 300.0  # Seconds without activity before eviction
    liveness_min_ratio: float = 5.0  # timeout must be at least this multiple of interval

    # WebSocket transport
    ws_max_message_size: int = 64 * 1024  # 64 KB
    ws_message_rate_limit: int = 50  # Max messages per window per connection
    ws_message_rate_window: int = 1  # Window in seconds
    ws_max_pending_messages: int = 256  # Outbound queue bound per connection

    # Server-push stream transport
    sse_keepalive_interval: float = 30.0

    def validate_runtime(self) -> list[str]:
        """
        Validate settings that would make the liveness monitor misbehave.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.liveness_interval <= 0:
            errors.append("LIVENESS_INTERVAL must be positive")
        elif self.liveness_timeout < self.liveness_interval * self.liveness_min_ratio:
            errors.append(
                "LIVENESS_TIMEOUT must be at least "
                f"{self.liveness_min_ratio:g}x LIVENESS_INTERVAL "
                f"(got {self.liveness_timeout:g}s for a {self.liveness_interval:g}s interval)"
            )

        if self.ws_max_pending_messages <= 0:
            errors.append("WS_MAX_PENDING_MESSAGES must be positive")

        if self.environment == "production" and self.debug:
            errors.append("DEBUG must be False in production")

        return errors

    @property
    def allowed_origin_list(self) -> list[str]:
        """Allowed origins as a list, empty when any origin is accepted."""
        if self.allowed_origins.strip() == "*":
            return []
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
