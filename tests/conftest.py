"""Shared fixtures: SQLite-backed stores, a controllable clock and a fake price source."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from portfolio_cache.database import get_session_factory
from portfolio_cache.domain import AssetType, PriceCacheEntry
from portfolio_cache.exceptions import PriceSourceError
from portfolio_cache.main import app
from portfolio_cache.models import Base
from portfolio_cache.routers.cache import get_price_source
from portfolio_cache.services import (
    CachePriceService,
    CacheRequestLog,
    PriceCacheStore,
    PriceQuote,
    SyncTimestampStore,
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePriceSource:
    """Quotes from a dict; symbols in `failing` raise, `currencies` overrides "usd"."""

    def __init__(self, prices: dict[str, str] | None = None):
        self.prices = prices or {}
        self.failing: set[str] = set()
        self.currencies: dict[str, str] = {}
        self.calls: list[tuple[str, AssetType]] = []

    def fetch_price(self, symbol: str, asset_type: AssetType) -> PriceQuote:
        self.calls.append((symbol, asset_type))
        if symbol in self.failing:
            raise PriceSourceError("quote unavailable", symbol, asset_type.value)
        return PriceQuote(
            price=Decimal(self.prices.get(symbol, "100.00")),
            currency=self.currencies.get(symbol, "usd"),
            source="finnhub",
        )


@pytest.fixture
def session_factory(tmp_path):
    """File-backed SQLite so worker threads share one database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cache.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def price_store(session_factory, clock):
    return PriceCacheStore(session_factory, clock=clock)


@pytest.fixture
def sync_store(session_factory, clock):
    return SyncTimestampStore(session_factory, clock=clock)


@pytest.fixture
def request_log(session_factory, clock):
    return CacheRequestLog(session_factory, clock=clock)


@pytest.fixture
def fake_source():
    return FakePriceSource({"AAPL": "189.50", "GOOGL": "141.20", "MSFT": "402.10", "BTC": "43250.00"})


@pytest.fixture
def service(price_store, sync_store, request_log, fake_source, clock):
    return CachePriceService(
        price_store=price_store,
        sync_store=sync_store,
        request_log=request_log,
        price_source=fake_source,
        clock=clock,
    )


@pytest.fixture
def seed_price(price_store, clock):
    """Write an entry as if it had been fetched minutes_ago."""

    def _seed(
        symbol: str,
        minutes_ago: float = 0,
        asset_type: AssetType = AssetType.STOCK,
        price: str = "100.00",
    ) -> PriceCacheEntry:
        current = clock.now
        clock.now = current - timedelta(minutes=minutes_ago)
        try:
            return price_store.put(
                PriceCacheEntry.create(symbol, asset_type, Decimal(price), "USD", "finnhub")
            )
        finally:
            clock.now = current

    return _seed


@pytest.fixture
def client(session_factory, fake_source):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_price_source] = lambda: fake_source
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
