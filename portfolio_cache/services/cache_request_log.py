"""Audit trail of cache update requests."""

from datetime import datetime

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from portfolio_cache.domain import CacheRequestStatus, CacheUpdateRequest
from portfolio_cache.exceptions import StorageError
from portfolio_cache.models import CacheUpdateRequestRecord
from portfolio_cache.utils.clock import Clock, ensure_utc, utc_now


class CacheRequestLog:
    """Append-style ledger; never consulted for cache decisions."""

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def start(self, user_id: str, symbols: list[str]) -> int:
        """Record a request in processing state and return its id."""
        try:
            with self._session_factory() as session:
                record = CacheUpdateRequestRecord(
                    user_id=user_id,
                    symbols=list(symbols),
                    status=CacheRequestStatus.PROCESSING.value,
                    requested_at=ensure_utc(self._clock()),
                )
                session.add(record)
                session.commit()
                return record.id
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to log cache request: {e}", original_error=e) from e

    def complete(
        self,
        request_id: int,
        updated_symbols: list[str],
        failed_symbols: list[str],
        cache_hits: list[str] | None = None,
        api_calls: int = 0,
    ) -> None:
        self._finish(
            request_id,
            CacheRequestStatus.COMPLETED,
            updated_symbols=updated_symbols,
            failed_symbols=failed_symbols,
            cache_hits=cache_hits,
            api_calls=api_calls,
        )

    def fail(self, request_id: int, error_message: str, failed_symbols: list[str]) -> None:
        self._finish(
            request_id,
            CacheRequestStatus.FAILED,
            failed_symbols=failed_symbols,
            error_message=error_message,
        )

    def _finish(
        self,
        request_id: int,
        status: CacheRequestStatus,
        updated_symbols: list[str] | None = None,
        failed_symbols: list[str] | None = None,
        error_message: str | None = None,
        cache_hits: list[str] | None = None,
        api_calls: int = 0,
    ) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(CacheUpdateRequestRecord, request_id)
                if record is None:
                    raise StorageError(f"Cache request {request_id} not found")
                record.status = status.value
                record.updated_symbols = list(updated_symbols or [])
                record.failed_symbols = list(failed_symbols or [])
                record.cache_hits = list(cache_hits or [])
                record.api_calls = api_calls
                record.error_message = error_message
                record.completed_at = ensure_utc(self._clock())
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update cache request: {e}", original_error=e) from e

    def recent(self, user_id: str, limit: int = 20) -> list[CacheUpdateRequest]:
        """Latest requests for a user, newest first."""
        try:
            with self._session_factory() as session:
                records = (
                    session.query(CacheUpdateRequestRecord)
                    .filter(CacheUpdateRequestRecord.user_id == user_id)
                    .order_by(desc(CacheUpdateRequestRecord.id))
                    .limit(limit)
                    .all()
                )
                return [self._to_domain(r) for r in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read cache requests: {e}", original_error=e) from e

    def completed_since(self, user_id: str, since: datetime) -> list[CacheUpdateRequest]:
        """Completed requests a user made at or after since, oldest first."""
        try:
            with self._session_factory() as session:
                records = (
                    session.query(CacheUpdateRequestRecord)
                    .filter(
                        CacheUpdateRequestRecord.user_id == user_id,
                        CacheUpdateRequestRecord.status == CacheRequestStatus.COMPLETED.value,
                        CacheUpdateRequestRecord.requested_at >= ensure_utc(since),
                    )
                    .order_by(CacheUpdateRequestRecord.requested_at.asc())
                    .all()
                )
                return [self._to_domain(r) for r in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read cache requests: {e}", original_error=e) from e

    @staticmethod
    def _to_domain(record: CacheUpdateRequestRecord) -> CacheUpdateRequest:
        return CacheUpdateRequest(
            id=record.id,
            user_id=record.user_id,
            symbols=list(record.symbols or []),
            status=CacheRequestStatus(record.status),
            requested_at=ensure_utc(record.requested_at),
            updated_symbols=list(record.updated_symbols or []),
            failed_symbols=list(record.failed_symbols or []),
            cache_hits=list(record.cache_hits or []),
            api_calls=record.api_calls or 0,
            error_message=record.error_message,
            completed_at=ensure_utc(record.completed_at) if record.completed_at else None,
        )
