"""Configuration management using pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://db.ygoprodeck.com/api/v7"

# 5 minutes for API responses, 30 days for artwork
DEFAULT_CACHE_TTL = 300.0
DEFAULT_IMAGE_MAX_AGE = 30 * 24 * 60 * 60.0


def get_default_data_cache_path() -> Path:
    """Get default path to the API response cache directory."""
    return Path(".cache") / "ygoapi" / "data"


def get_default_image_cache_path() -> Path:
    """Get default path to the card image cache directory."""
    return Path(".cache") / "ygoapi" / "images"


class RetryPolicy(BaseModel):
    """Exponential backoff policy applied per host."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after a failed attempt (1-based) before the next one."""
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


class FallbackConfig(BaseModel):
    """Alternate hosts tried after the primary host, plus the per-attempt timeout."""

    model_config = ConfigDict(frozen=True)

    urls: tuple[str, ...] = ()
    timeout: float = Field(default=5.0, gt=0)


class FileSystemCacheOptions(BaseModel):
    """Options for the filesystem-backed stores."""

    model_config = ConfigDict(frozen=True)

    cache_dir: Path | None = None
    max_age: float | None = Field(default=None, gt=0)


class Settings(BaseSettings):
    """Client settings loaded from environment variables (``YGOAPI_*``)."""

    model_config = SettingsConfigDict(
        env_prefix="YGOAPI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Hosts
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Primary API base URL",
    )
    fallback_urls: list[str] = Field(
        default_factory=list,
        description="Alternate base URLs tried after the primary host",
    )
    request_timeout: float = Field(
        default=5.0,
        description="Per-attempt request timeout in seconds",
    )

    # Retry policy
    retry_max_attempts: int = Field(default=3, description="Attempts per host")
    retry_base_delay: float = Field(default=1.0, description="First backoff delay in seconds")
    retry_max_delay: float = Field(default=10.0, description="Backoff delay ceiling in seconds")
    retry_backoff_factor: float = Field(default=2.0, description="Backoff multiplier")

    # Throttling
    use_queue: bool = Field(
        default=True,
        description="Route requests through a throttled queue",
    )
    queue_interval: float = Field(
        default=0.05,
        description="Minimum spacing between request dispatches in seconds",
    )

    # Data cache settings
    use_data_cache: bool = Field(
        default=True,
        description="Cache API responses on disk",
    )
    cache_ttl_seconds: float = Field(
        default=DEFAULT_CACHE_TTL,
        ge=0,
        description="TTL for cached API responses in seconds (0 disables caching)",
    )
    data_cache_dir: Path = Field(
        default_factory=get_default_data_cache_path,
        description="Directory for cached API responses",
    )
    data_cache_max_age: float = Field(
        default=DEFAULT_CACHE_TTL,
        description="Age in seconds after which cleanup removes cached responses",
    )

    # Image cache settings
    image_cache_enabled: bool = Field(
        default=False,
        description="Download card artwork in the background",
    )
    image_cache_dir: Path = Field(
        default_factory=get_default_image_cache_path,
        description="Directory for cached card images",
    )
    image_cache_max_age: float = Field(
        default=DEFAULT_IMAGE_MAX_AGE,
        description="Age in seconds after which cleanup removes cached images",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy described by these settings."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            backoff_factor=self.retry_backoff_factor,
        )

    def fallback_config(self) -> FallbackConfig:
        """Build the fallback host configuration described by these settings."""
        return FallbackConfig(urls=tuple(self.fallback_urls), timeout=self.request_timeout)
