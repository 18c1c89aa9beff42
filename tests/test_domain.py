"""Tests for domain types and cache key helpers."""

from datetime import datetime, timezone
from decimal import Decimal

from portfolio_cache.domain import (
    AssetType,
    PortfolioSymbols,
    PriceCacheEntry,
    PriceMetadata,
    PriceSourceName,
    is_valid_entry,
    make_cache_key,
    parse_cache_key,
    validate_entry,
)

NOW = datetime(2026, 1, 15, 14, 30, tzinfo=timezone.utc)


class TestCacheKeys:
    def test_make_cache_key_normalizes(self):
        assert make_cache_key(" aapl ", AssetType.STOCK) == "stock_AAPL"
        assert make_cache_key("btc", AssetType.CRYPTO) == "crypto_BTC"

    def test_parse_cache_key(self):
        assert parse_cache_key("crypto_BTC") == ("BTC", AssetType.CRYPTO)

    def test_parse_malformed_keys(self):
        assert parse_cache_key("AAPL") is None
        assert parse_cache_key("bond_AAPL") is None
        assert parse_cache_key("stock_") is None

    def test_underscore_symbol_round_trips(self):
        key = make_cache_key("brk_b", AssetType.STOCK)
        assert key == "stock_BRK_B"
        assert parse_cache_key(key) == ("BRK_B", AssetType.STOCK)


class TestPriceCacheEntry:
    def test_create_normalizes(self):
        entry = PriceCacheEntry.create("aapl", "stock", 189.5, "usd", PriceSourceName.FINNHUB)
        assert entry.symbol == "AAPL"
        assert entry.asset_type == AssetType.STOCK
        assert entry.price == Decimal("189.5")
        assert entry.currency == "USD"
        assert entry.source == "finnhub"
        assert entry.cache_key == "stock_AAPL"
        assert entry.last_updated is None

    def test_stamped_returns_copy(self):
        entry = PriceCacheEntry.create("AAPL", AssetType.STOCK, 1, "USD", "finnhub")
        stamped = entry.stamped(NOW)
        assert stamped.last_updated == NOW
        assert entry.last_updated is None


class TestValidateEntry:
    def test_valid(self):
        entry = PriceCacheEntry.create("AAPL", AssetType.STOCK, 1, "USD", "finnhub").stamped(NOW)
        assert validate_entry(entry) == []
        assert is_valid_entry(entry)

    def test_unstamped_entry_is_invalid(self):
        entry = PriceCacheEntry.create("AAPL", AssetType.STOCK, 1, "USD", "finnhub")
        assert validate_entry(entry) == ["last_updated is required"]

    def test_reports_every_problem(self):
        entry = PriceCacheEntry(
            symbol="", asset_type=AssetType.STOCK, price=Decimal("-5"),
            currency="", source="", last_updated=NOW,
        )
        problems = validate_entry(entry)
        assert "symbol is required" in problems
        assert "price must be greater than zero" in problems
        assert "currency is required" in problems
        assert "source is required" in problems

    def test_currency_must_be_three_letters(self):
        for currency in ("USDT", "US", "U5D"):
            entry = PriceCacheEntry.create(
                "BTC", AssetType.CRYPTO, 1, currency, "coingecko"
            ).stamped(NOW)
            assert validate_entry(entry) == ["currency must be a 3-letter code"]

    def test_zero_price_is_invalid(self):
        entry = PriceCacheEntry.create("AAPL", AssetType.STOCK, 0, "USD", "finnhub").stamped(NOW)
        assert not is_valid_entry(entry)


class TestPriceMetadata:
    def test_to_dict_drops_empty_fields(self):
        assert PriceMetadata(volume=1000, high=10.5).to_dict() == {"volume": 1000, "high": 10.5}

    def test_from_dict_ignores_unknown_keys(self):
        metadata = PriceMetadata.from_dict({"change": 1.5, "exchange": "NASDAQ"})
        assert metadata == PriceMetadata(change=1.5)

    def test_from_empty_dict(self):
        assert PriceMetadata.from_dict({}) is None
        assert PriceMetadata.from_dict(None) is None


class TestPortfolioSymbols:
    def test_dedupes_and_normalizes(self):
        portfolio = PortfolioSymbols(stocks=["aapl", "AAPL", " msft ", ""], crypto=["btc"])
        assert portfolio.stocks == ["AAPL", "MSFT"]
        assert portfolio.crypto == ["BTC"]
        assert portfolio.total == 3

    def test_coerce_from_dict(self):
        portfolio = PortfolioSymbols.coerce({"stocks": ["AAPL"]})
        assert portfolio.stocks == ["AAPL"]
        assert portfolio.crypto == []

    def test_pairs(self):
        portfolio = PortfolioSymbols(stocks=["AAPL"], crypto=["BTC"])
        assert portfolio.pairs() == [("AAPL", AssetType.STOCK), ("BTC", AssetType.CRYPTO)]
        assert portfolio.for_type(AssetType.CRYPTO) == ["BTC"]
        assert portfolio.to_dict() == {"stocks": ["AAPL"], "crypto": ["BTC"]}
