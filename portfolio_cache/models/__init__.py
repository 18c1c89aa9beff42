from portfolio_cache.models.base import Base
from portfolio_cache.models.cache_request import CacheUpdateRequestRecord
from portfolio_cache.models.price_cache import PriceCacheRecord
from portfolio_cache.models.user_sync import UserSyncTimestamp

__all__ = [
    "Base",
    "PriceCacheRecord",
    "UserSyncTimestamp",
    "CacheUpdateRequestRecord",
]
