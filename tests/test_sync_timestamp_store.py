"""Tests for per-user sync bookmarks."""

from datetime import timedelta

from portfolio_cache.domain import PortfolioSymbols


class TestSyncTimestampStore:
    def test_unknown_user(self, sync_store):
        assert sync_store.get("user-1") is None

    def test_upsert_creates_record(self, sync_store, clock):
        sync_store.upsert("user-1", {"stocks": ["aapl"], "crypto": ["btc"]})

        record = sync_store.get("user-1")
        assert record.last_sync_timestamp == clock.now
        assert record.portfolio_symbols == PortfolioSymbols(stocks=["AAPL"], crypto=["BTC"])

    def test_upsert_replaces_snapshot(self, sync_store, clock):
        sync_store.upsert("user-1", PortfolioSymbols(stocks=["AAPL", "MSFT"]))
        clock.advance(minutes=5)
        sync_store.upsert("user-1", PortfolioSymbols(crypto=["ETH"]))

        record = sync_store.get("user-1")
        assert record.last_sync_timestamp == clock.now
        assert record.portfolio_symbols.stocks == []
        assert record.portfolio_symbols.crypto == ["ETH"]

    def test_users_are_independent(self, sync_store):
        sync_store.upsert("user-1", PortfolioSymbols(stocks=["AAPL"]))
        assert sync_store.get("user-2") is None

    def test_compare_to_cache(self, sync_store, clock):
        comparison = sync_store.compare_to_cache(
            clock.now, {"AAPL": clock.now - timedelta(minutes=1), "MSFT": clock.now}
        )
        assert comparison.user_newer == ["AAPL"]
        assert comparison.equal == ["MSFT"]
