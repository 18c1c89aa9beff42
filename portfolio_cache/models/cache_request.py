from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_cache.models.base import Base


class CacheUpdateRequestRecord(Base):
    """Append-style audit trail of cache update attempts."""

    __tablename__ = "cache_update_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    symbols: Mapped[list] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), index=True)  # processing, completed, failed
    updated_symbols: Mapped[list | None] = mapped_column(JSON, nullable=True)
    failed_symbols: Mapped[list | None] = mapped_column(JSON, nullable=True)
    cache_hits: Mapped[list | None] = mapped_column(JSON, nullable=True)
    api_calls: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    error_message: Mapped[str | None] = mapped_column(Text)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
