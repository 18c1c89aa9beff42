"""Tests for freshness calculation functions."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from portfolio_cache.calculations import freshness
from portfolio_cache.domain import AssetType, PortfolioSymbols, PriceCacheEntry

NOW = datetime(2026, 1, 15, 14, 30, tzinfo=timezone.utc)


def entry(symbol: str, minutes_ago: float, asset_type: AssetType = AssetType.STOCK) -> PriceCacheEntry:
    return PriceCacheEntry.create(symbol, asset_type, Decimal("10"), "USD", "finnhub").stamped(
        NOW - timedelta(minutes=minutes_ago)
    )


class TestCacheAgeMinutes:
    def test_floors_to_whole_minutes(self):
        assert freshness.cache_age_minutes(NOW - timedelta(minutes=4, seconds=59), NOW) == 4

    def test_zero_for_just_written(self):
        assert freshness.cache_age_minutes(NOW, NOW) == 0

    def test_naive_timestamps_are_utc(self):
        naive = (NOW - timedelta(minutes=3)).replace(tzinfo=None)
        assert freshness.cache_age_minutes(naive, NOW) == 3


class TestIsFresh:
    def test_age_equal_to_ttl_is_fresh(self):
        assert freshness.is_fresh(NOW - timedelta(minutes=4), 4, NOW) is True

    def test_age_over_ttl_is_stale(self):
        assert freshness.is_fresh(NOW - timedelta(minutes=5), 4, NOW) is False

    @pytest.mark.parametrize("ttl", [0, 3, 6, 7, 60])
    def test_monotonic_in_ttl(self, ttl):
        """Fresh exactly when ttl >= age."""
        last_updated = NOW - timedelta(minutes=6)
        assert freshness.is_fresh(last_updated, ttl, NOW) is (ttl >= 6)


class TestIsUsable:
    def test_within_max_stale_hours(self):
        assert freshness.is_usable(NOW - timedelta(hours=23), 24, NOW) is True

    def test_beyond_max_stale_hours(self):
        assert freshness.is_usable(NOW - timedelta(hours=24, minutes=1), 24, NOW) is False


class TestFreshnessStatus:
    def test_missing_entry(self):
        status = freshness.freshness_status("AAPL", AssetType.STOCK, None, 4, NOW)
        assert status.status == freshness.MISSING
        assert status.age_minutes is None
        assert status.should_update is True

    def test_stale_entry_reports_age(self):
        status = freshness.freshness_status("AAPL", AssetType.STOCK, entry("AAPL", 6), 4, NOW)
        assert status.status == freshness.STALE
        assert status.age_minutes == 6
        assert status.should_update is True

    def test_fresh_entry_needs_no_update(self):
        status = freshness.freshness_status("AAPL", AssetType.STOCK, entry("AAPL", 1), 4, NOW)
        assert status.status == freshness.FRESH
        assert status.should_update is False


class TestAnalyzeFreshness:
    def test_cold_cache(self):
        result = freshness.analyze_freshness(["AAPL", "GOOGL"], AssetType.STOCK, {}, 4, NOW)
        assert result.fresh == []
        assert result.stale == []
        assert result.missing == ["AAPL", "GOOGL"]
        assert result.fresh_percentage == 0

    def test_mixed_freshness(self):
        cache = {"AAPL": entry("AAPL", 2), "GOOGL": entry("GOOGL", 6)}
        result = freshness.analyze_freshness(["AAPL", "GOOGL"], AssetType.STOCK, cache, 4, NOW)
        assert result.fresh == ["AAPL"]
        assert result.stale == ["GOOGL"]
        assert result.missing == []
        assert result.fresh_percentage == 50

    def test_empty_symbols(self):
        result = freshness.analyze_freshness([], AssetType.CRYPTO, {}, 4, NOW)
        assert result.total_symbols == 0
        assert result.fresh_percentage == 0

    def test_every_symbol_lands_in_one_bucket(self):
        symbols = ["A", "B", "C", "D", "E", "F"]
        cache = {"A": entry("A", 0), "B": entry("B", 4), "C": entry("C", 5), "E": entry("E", 600)}
        result = freshness.analyze_freshness(symbols, AssetType.STOCK, cache, 4, NOW)
        buckets = result.fresh + result.stale + result.missing
        assert sorted(buckets) == symbols
        assert len(result.fresh) + len(result.stale) + len(result.missing) == len(symbols)


class TestCompareSyncToCache:
    def test_partitions_by_newer_side(self):
        user_sync = NOW - timedelta(minutes=5)
        comparison = freshness.compare_sync_to_cache(
            user_sync,
            {
                "AAPL": NOW - timedelta(minutes=10),
                "GOOGL": NOW,
                "MSFT": user_sync,
            },
        )
        assert comparison.user_newer == ["AAPL"]
        assert comparison.cache_newer == ["GOOGL"]
        assert comparison.equal == ["MSFT"]


class TestFreshnessReport:
    def test_combines_asset_types(self):
        portfolio = PortfolioSymbols(stocks=["AAPL", "GOOGL"], crypto=["BTC", "ETH"])
        stock_cache = {"AAPL": entry("AAPL", 1), "GOOGL": entry("GOOGL", 10)}
        crypto_cache = {"BTC": entry("BTC", 20, AssetType.CRYPTO)}

        report = freshness.freshness_report(portfolio, stock_cache, crypto_cache, 4, NOW)

        assert report.overall.total_symbols == 4
        assert report.overall.fresh_symbols == 1
        assert report.overall.stale_symbols == 2
        assert report.overall.missing_symbols == 1
        assert report.overall.overall_freshness == 25
        assert "Consider requesting a cache update to improve data freshness" in report.recommendations
        assert "1 symbols are missing from cache and need to be fetched" in report.recommendations

    def test_no_recommendations_when_all_fresh(self):
        portfolio = PortfolioSymbols(stocks=["AAPL"])
        report = freshness.freshness_report(portfolio, {"AAPL": entry("AAPL", 0)}, {}, 4, NOW)
        assert report.recommendations == []
