"""PIM client configuration settings.

Loaded from environment variables with AZPIM_ prefix.

Environment Variables:
    AZPIM_MANAGEMENT_URL: Control-plane base URL
    AZPIM_GRAPH_URL: Directory (Graph) base URL
    AZPIM_CACHE_TTL: TTL of object, group and definition caches in seconds
    AZPIM_RETRY_COUNT: Maximum attempts per request
    AZPIM_RETRY_DELAY: Fixed delay between attempts in seconds
    AZPIM_RETRY_JITTER: Upper bound of random jitter added to the delay
    AZPIM_REQUEST_TIMEOUT: Per-request HTTP timeout in seconds
    AZPIM_POLL_INTERVAL: Minimum spacing of activation polling calls
    AZPIM_CONCURRENCY: Default bound of the activation worker pool
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PimSettings(BaseSettings):
    """PIM client configuration loaded from environment variables.

    Example:
        >>> settings = PimSettings()
        >>> settings.management_url
        'https://management.azure.com'
        >>> settings.retry_count
        10
    """

    model_config = SettingsConfigDict(
        env_prefix="AZPIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    management_url: str = Field(
        default="https://management.azure.com",
        description="Control-plane base URL",
    )
    graph_url: str = Field(
        default="https://graph.microsoft.com",
        description="Directory (Graph) base URL",
    )
    cache_ttl: float = Field(
        default=3600.0,
        gt=0,
        le=86400,
        description="TTL of object, group and definition caches in seconds",
    )
    retry_count: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum attempts per request",
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Fixed delay between attempts in seconds",
    )
    retry_jitter: float = Field(
        default=1.0,
        ge=0,
        description="Upper bound of random jitter added to the retry delay",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds",
    )
    poll_interval: float = Field(
        default=5.0,
        ge=0,
        description="Minimum spacing of 'list active' calls while waiting for activation",
    )
    concurrency: int = Field(
        default=5,
        ge=1,
        le=64,
        description="Default bound of the activation worker pool",
    )


@lru_cache(maxsize=1)
def get_pim_settings() -> PimSettings:
    """Get cached PimSettings singleton.

    Clear cache with ``get_pim_settings.cache_clear()`` for testing.

    Returns:
        PimSettings instance loaded from environment.
    """
    return PimSettings()
