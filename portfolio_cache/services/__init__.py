from portfolio_cache.services.cache_price_service import (
    CachePriceService,
    CacheUpdateResult,
    PortfolioData,
)
from portfolio_cache.services.cache_request_log import CacheRequestLog
from portfolio_cache.services.price_cache_store import PriceCacheStore
from portfolio_cache.services.price_source import PriceQuote, PriceSource
from portfolio_cache.services.sync_timestamp_store import SyncTimestampStore

__all__ = [
    "CachePriceService",
    "CacheUpdateResult",
    "PortfolioData",
    "CacheRequestLog",
    "PriceCacheStore",
    "PriceQuote",
    "PriceSource",
    "SyncTimestampStore",
]
