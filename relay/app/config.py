"""
Configuration module for the Media Relay service.

This module uses Pydantic Settings to load and validate environment variables
for the relay access gate, upstream fetching, logging and server binding.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Everything is optional: with no environment at all the relay starts with
    open access on port 5000.
    """

    # =========================================================================
    # Access Gate
    # =========================================================================

    API_KEY: Optional[str] = Field(
        default=None,
        description="Shared secret required as ?key= on relay requests (unset = open access)",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the relay server",
    )

    PORT: int = Field(
        default=5000,
        description="Port to bind the relay server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Upstream Fetching
    # =========================================================================

    UPSTREAM_CONNECT_TIMEOUT: float = Field(
        default=10.0,
        description="Seconds allowed to establish the upstream connection",
        gt=0,
    )

    UPSTREAM_READ_TIMEOUT: Optional[float] = Field(
        default=60.0,
        description="Seconds allowed between upstream reads (unset = wait forever)",
        gt=0,
    )

    RELAY_CHUNK_SIZE: int = Field(
        default=64 * 1024,
        description="Maximum bytes read from upstream per copy-loop iteration",
        ge=1024,
        le=4 * 1024 * 1024,
    )

    # =========================================================================
    # Frontend & Catalog
    # =========================================================================

    STATIC_DIR: Optional[str] = Field(
        default=None,
        description="Directory holding the built frontend (mounted at / when set)",
    )

    CHANNELS_FILE: Optional[str] = Field(
        default=None,
        description="Path to a channel catalog JSON file (defaults to the bundled catalog)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def gate_enabled(self) -> bool:
        """True when relay requests must present the shared secret."""
        return bool(self.API_KEY)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("API_KEY", "STATIC_DIR", "CHANNELS_FILE")
    @classmethod
    def empty_string_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """
        Treat empty environment values as not configured.

        ``API_KEY=`` in a .env file must not switch the gate on with an
        empty secret.
        """
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is one the logging module understands.

        Raises:
            ValueError: If level is not supported
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        level = v.strip().upper()
        if level not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so the environment is read once per process. Routes receive it
    through ``Depends(get_settings)`` so tests can swap it with
    ``app.dependency_overrides``.

    Returns:
        Settings instance with all configuration loaded and validated.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate configuration and return a status report.

    Called during application startup; warnings are logged, errors abort.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if not settings.gate_enabled:
        warnings.append("API_KEY is not set - relay is open to anyone who can reach it")
    elif len(settings.API_KEY) < 16:
        warnings.append("API_KEY is shorter than recommended (16+ chars)")

    if settings.UPSTREAM_READ_TIMEOUT is None:
        warnings.append("UPSTREAM_READ_TIMEOUT is disabled - stalled upstreams hold connections open")

    if settings.CHANNELS_FILE:
        from pathlib import Path

        if not Path(settings.CHANNELS_FILE).is_file():
            errors.append(f"CHANNELS_FILE does not exist: {settings.CHANNELS_FILE}")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "gate_enabled": settings.gate_enabled,
        "chunk_size": settings.RELAY_CHUNK_SIZE,
    }


if __name__ == "__main__":
    """
    Run this module directly to validate your .env configuration:
        python -m relay.app.config
    """
    config = get_settings()
    status = validate_configuration(config)

    print("=" * 80)
    print("RELAY CONFIGURATION")
    print("=" * 80)
    print(f"  Host:            {config.HOST}")
    print(f"  Port:            {config.PORT}")
    print(f"  Log level:       {config.LOG_LEVEL}")
    print(f"  Access gate:     {'enabled' if config.gate_enabled else 'disabled'}")
    print(f"  Connect timeout: {config.UPSTREAM_CONNECT_TIMEOUT}s")
    print(f"  Read timeout:    {config.UPSTREAM_READ_TIMEOUT}s")
    print(f"  Chunk size:      {config.RELAY_CHUNK_SIZE} bytes")

    for error in status["errors"]:
        print(f"  ✗ {error}")
    for warning in status["warnings"]:
        print(f"  ⚠ {warning}")
