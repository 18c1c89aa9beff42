from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_cache.models.base import Base, TimestampMixin


class PriceCacheRecord(Base, TimestampMixin):
    """Latest known price per (asset_type, symbol), shared by all users."""

    __tablename__ = "price_cache"
    __table_args__ = (
        UniqueConstraint("asset_type", "symbol", name="uq_price_cache_asset_symbol"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    cache_key: Mapped[str] = mapped_column(String(64), unique=True, index=True)  # stock_AAPL
    asset_type: Mapped[str] = mapped_column(String(10), index=True)  # stock, crypto
    symbol: Mapped[str] = mapped_column(String(40))

    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    currency: Mapped[str] = mapped_column(String(3))
    source: Mapped[str] = mapped_column(String(30))  # finnhub, alphavantage
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    # "metadata" is reserved on declarative classes
    price_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
