"""Shared price cache storage with batched multi-key reads."""

import logging
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TypeVar

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portfolio_cache.config import BATCH_SIZE, DEFAULT_TTL_MINUTES
from portfolio_cache.domain import (
    AssetType,
    PriceCacheEntry,
    PriceMetadata,
    make_cache_key,
    normalize_symbol,
    validate_entry,
)
from portfolio_cache.exceptions import StorageError, ValidationError
from portfolio_cache.models import PriceCacheRecord
from portfolio_cache.utils.clock import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def chunked(items: list[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most size items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _dialect_insert(session: Session):
    """The INSERT construct supporting on_conflict_do_update for this session's database."""
    dialect = session.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect]
    except KeyError:
        raise StorageError(f"Upserts are not supported on {dialect}") from None


@dataclass
class CacheStatistics:
    """Cache-wide counts across every user's symbols."""

    total_stock_entries: int
    total_crypto_entries: int
    average_age: float  # minutes
    fresh_entries: int
    stale_entries: int


class PriceCacheStore:
    """
    Durable latest-price storage keyed by (asset_type, symbol).

    Writes overwrite in place (last writer wins); there is no versioning
    and no locking. Multi-key reads are split into sub-batches of at most
    batch_size keys, issued concurrently, each on its own session.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        batch_size: int = BATCH_SIZE,
        clock: Clock = utc_now,
        max_workers: int = 4,
    ):
        self._session_factory = session_factory
        self._batch_size = batch_size
        self._clock = clock
        self._max_workers = max_workers

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # Reads

    def get(self, symbols: Iterable[str], asset_type: AssetType) -> dict[str, PriceCacheEntry]:
        """
        Get cached entries for symbols of one asset type.

        Unknown symbols are omitted from the result. Entries are returned
        as stored, without validation, so integrity checks can see them.
        """
        keys: list[str] = []
        for symbol in symbols:
            key = make_cache_key(symbol, asset_type)
            if key not in keys:
                keys.append(key)
        if not keys:
            return {}

        batches = list(chunked(keys, self._batch_size))
        if len(batches) == 1:
            batch_results = [self._fetch_batch(batches[0])]
        else:
            workers = min(len(batches), self._max_workers)
            with ThreadPoolExecutor(max_workers=workers) as executor:
                batch_results = list(executor.map(self._fetch_batch, batches))

        results: dict[str, PriceCacheEntry] = {}
        for batch in batch_results:
            for entry in batch:
                results[entry.symbol] = entry
        return results

    def _fetch_batch(self, keys: list[str]) -> list[PriceCacheEntry]:
        """Fetch one sub-batch of cache keys."""
        try:
            with self._session_factory() as session:
                records = (
                    session.query(PriceCacheRecord)
                    .filter(PriceCacheRecord.cache_key.in_(keys))
                    .all()
                )
                return [self._to_domain(r) for r in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read price cache: {e}", original_error=e) from e

    def list_stale(self, asset_type: AssetType, threshold_minutes: int = DEFAULT_TTL_MINUTES) -> list[str]:
        """Symbols last updated more than threshold_minutes ago, oldest first."""
        cutoff = ensure_utc(self._clock()) - timedelta(minutes=threshold_minutes)
        try:
            with self._session_factory() as session:
                rows = (
                    session.query(PriceCacheRecord.symbol)
                    .filter(
                        PriceCacheRecord.asset_type == AssetType(asset_type).value,
                        PriceCacheRecord.last_updated < cutoff,
                    )
                    .order_by(PriceCacheRecord.last_updated.asc())
                    .all()
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list stale entries: {e}", original_error=e) from e
        return [r[0] for r in rows]

    def statistics(self, ttl_minutes: int = DEFAULT_TTL_MINUTES) -> CacheStatistics:
        """Counts and average age over the whole cache."""
        now = ensure_utc(self._clock())
        try:
            with self._session_factory() as session:
                rows = session.query(
                    PriceCacheRecord.asset_type, PriceCacheRecord.last_updated
                ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read cache statistics: {e}", original_error=e) from e

        stock_entries = sum(1 for asset_type, _ in rows if asset_type == AssetType.STOCK.value)
        ages = [(now - ensure_utc(updated)).total_seconds() / 60 for _, updated in rows]
        fresh = sum(1 for age in ages if age <= ttl_minutes)

        return CacheStatistics(
            total_stock_entries=stock_entries,
            total_crypto_entries=len(rows) - stock_entries,
            average_age=sum(ages) / len(ages) if ages else 0.0,
            fresh_entries=fresh,
            stale_entries=len(ages) - fresh,
        )

    # Writes

    def put(self, entry: PriceCacheEntry) -> PriceCacheEntry:
        """Validate and write a single entry."""
        return self.put_many([entry])[0]

    def put_many(self, entries: list[PriceCacheEntry]) -> list[PriceCacheEntry]:
        """
        Validate and write entries in one transaction.

        Every entry is stamped with the store's current time. If any entry
        fails validation nothing is written.

        Raises:
            ValidationError: an entry is structurally invalid
            StorageError: the database rejected the write
        """
        if not entries:
            return []

        now = ensure_utc(self._clock())
        stamped = [e.stamped(now) for e in entries]

        problems = []
        for entry in stamped:
            for problem in validate_entry(entry):
                problems.append(f"{entry.symbol or '<empty>'}: {problem}")
        if problems:
            first = stamped[0].symbol if len(stamped) == 1 else None
            raise ValidationError(
                "Invalid cache data: " + "; ".join(problems), symbol=first
            )

        # Later entries for the same key win within a batch
        by_key = {e.cache_key: e for e in stamped}

        try:
            with self._session_factory() as session:
                try:
                    self._upsert(session, list(by_key.values()))
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    raise
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write price cache: {e}", original_error=e) from e

        logger.debug("Wrote %d price cache entries", len(by_key))
        return stamped

    def _upsert(self, session: Session, entries: list[PriceCacheEntry]) -> None:
        """
        Insert or overwrite entries with one atomic statement per sub-batch.

        Concurrent writers of the same key never collide on the unique
        constraint; whichever statement runs last wins.
        """
        insert = _dialect_insert(session)
        table = PriceCacheRecord.__table__

        for batch in chunked(entries, self._batch_size):
            stmt = insert(table).values(
                [
                    {
                        "cache_key": entry.cache_key,
                        "asset_type": AssetType(entry.asset_type).value,
                        "symbol": entry.symbol,
                        "price": entry.price,
                        "currency": entry.currency,
                        "source": entry.source,
                        "last_updated": entry.last_updated,
                        "metadata": entry.metadata.to_dict() if entry.metadata else None,
                    }
                    for entry in batch
                ]
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["cache_key"],
                set_={
                    "price": stmt.excluded.price,
                    "currency": stmt.excluded.currency,
                    "source": stmt.excluded.source,
                    "last_updated": stmt.excluded.last_updated,
                    "metadata": stmt.excluded["metadata"],
                    # onupdate hooks do not fire for ON CONFLICT updates
                    "updated_at": func.now(),
                },
            )
            session.execute(stmt)

    def purge_older_than(self, max_age_hours: int) -> int:
        """Delete entries last updated more than max_age_hours ago."""
        cutoff = ensure_utc(self._clock()) - timedelta(hours=max_age_hours)
        try:
            with self._session_factory() as session:
                deleted = (
                    session.query(PriceCacheRecord)
                    .filter(PriceCacheRecord.last_updated < cutoff)
                    .delete(synchronize_session=False)
                )
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to purge price cache: {e}", original_error=e) from e

        logger.info("Purged %d price cache entries older than %sh", deleted, max_age_hours)
        return deleted

    @staticmethod
    def _to_domain(record: PriceCacheRecord) -> PriceCacheEntry:
        """Convert ORM record to domain entry."""
        return PriceCacheEntry(
            symbol=normalize_symbol(record.symbol),
            asset_type=AssetType(record.asset_type),
            price=Decimal(str(record.price)) if record.price is not None else None,
            currency=record.currency,
            source=record.source,
            last_updated=ensure_utc(record.last_updated) if record.last_updated else None,
            metadata=PriceMetadata.from_dict(record.price_metadata),
        )
