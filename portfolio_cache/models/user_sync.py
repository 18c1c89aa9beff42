from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_cache.models.base import Base, TimestampMixin


class UserSyncTimestamp(Base, TimestampMixin):
    """One row per user: when their portfolio was last synchronized."""

    __tablename__ = "user_sync_timestamps"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    last_sync_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # {"stocks": [...], "crypto": [...]}
    portfolio_symbols: Mapped[dict] = mapped_column(JSON)
