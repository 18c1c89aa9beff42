from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from portfolio_cache.exceptions import ConfigurationError

# Cache policy defaults
DEFAULT_TTL_MINUTES = 4
MAX_STALE_HOURS = 24
BATCH_SIZE = 10

# Reserved for price source collaborators that implement retries
RETRY_ATTEMPTS = 3
RETRY_DELAY_MS = 1000

# Fresh-percentage band edges for the update strategy label
STRATEGY_THRESHOLDS = (0, 50, 100)

# Average fresh percentage below which a refresh is recommended
UPDATE_RECOMMENDATION_THRESHOLD = 75


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env")

    database_url: str = "sqlite:///./portfolio_cache.db"
    log_level: str = "INFO"

    # Cache policy
    cache_ttl_minutes: int = DEFAULT_TTL_MINUTES
    cache_max_stale_hours: int = MAX_STALE_HOURS
    cache_batch_size: int = BATCH_SIZE
    cache_enable_auto_update: bool = False

    # External price source
    price_source_timeout_seconds: float = 10.0
    price_source_max_workers: int = 8
    price_source_retry_attempts: int = RETRY_ATTEMPTS
    price_source_retry_delay_ms: int = RETRY_DELAY_MS


@lru_cache
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True)
class CacheOptions:
    """
    Policy knobs for one cache service instance.

    enable_auto_update is carried for callers that schedule periodic
    refreshes; nothing inside the cache acts on it.
    """

    ttl_minutes: int = DEFAULT_TTL_MINUTES
    max_stale_hours: int = MAX_STALE_HOURS
    batch_size: int = BATCH_SIZE
    enable_auto_update: bool = False
    source_timeout_seconds: float = 10.0
    source_max_workers: int = 8

    def __post_init__(self) -> None:
        if self.ttl_minutes < 0:
            raise ConfigurationError("ttl_minutes must be >= 0")
        if self.max_stale_hours <= 0:
            raise ConfigurationError("max_stale_hours must be > 0")
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be >= 1")
        if self.source_timeout_seconds <= 0:
            raise ConfigurationError("source_timeout_seconds must be > 0")
        if self.source_max_workers < 1:
            raise ConfigurationError("source_max_workers must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheOptions":
        return cls(
            ttl_minutes=settings.cache_ttl_minutes,
            max_stale_hours=settings.cache_max_stale_hours,
            batch_size=settings.cache_batch_size,
            enable_auto_update=settings.cache_enable_auto_update,
            source_timeout_seconds=settings.price_source_timeout_seconds,
            source_max_workers=settings.price_source_max_workers,
        )
