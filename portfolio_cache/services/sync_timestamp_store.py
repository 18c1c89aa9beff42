"""Per-user sync bookmarks into the shared price cache."""

import logging
from collections.abc import Mapping
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from portfolio_cache.calculations.freshness import SyncComparison, compare_sync_to_cache
from portfolio_cache.domain import PortfolioSymbols, UserSyncRecord
from portfolio_cache.exceptions import StorageError
from portfolio_cache.models import UserSyncTimestamp
from portfolio_cache.utils.clock import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)


class SyncTimestampStore:
    """One record per user, replaced wholesale on every sync."""

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def get(self, user_id: str) -> UserSyncRecord | None:
        """Get a user's sync record; None means a new user with no baseline."""
        try:
            with self._session_factory() as session:
                record = session.get(UserSyncTimestamp, user_id)
                return self._to_domain(record) if record else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read sync timestamp: {e}", original_error=e) from e

    def upsert(
        self, user_id: str, portfolio_symbols: PortfolioSymbols | dict
    ) -> UserSyncRecord:
        """Set last sync to now and replace the stored symbol snapshot."""
        symbols = PortfolioSymbols.coerce(portfolio_symbols)
        now = ensure_utc(self._clock())
        try:
            with self._session_factory() as session:
                record = session.get(UserSyncTimestamp, user_id)
                if record is None:
                    record = UserSyncTimestamp(user_id=user_id)
                    session.add(record)
                record.last_sync_timestamp = now
                record.portfolio_symbols = symbols.to_dict()
                record.updated_at = now
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update sync timestamp: {e}", original_error=e) from e

        logger.debug("Advanced sync timestamp for user %s", user_id)
        return UserSyncRecord(
            user_id=user_id,
            last_sync_timestamp=now,
            portfolio_symbols=symbols,
            updated_at=now,
        )

    @staticmethod
    def compare_to_cache(
        user_last_sync: datetime, cache_timestamps: Mapping[str, datetime]
    ) -> SyncComparison:
        """Advisory comparison of a user's bookmark against cache entry times."""
        return compare_sync_to_cache(user_last_sync, cache_timestamps)

    @staticmethod
    def _to_domain(record: UserSyncTimestamp) -> UserSyncRecord:
        return UserSyncRecord(
            user_id=record.user_id,
            last_sync_timestamp=ensure_utc(record.last_sync_timestamp),
            portfolio_symbols=PortfolioSymbols.coerce(record.portfolio_symbols or {}),
            updated_at=ensure_utc(record.updated_at),
        )
