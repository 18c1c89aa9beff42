"""Tests for concurrent price resolution."""

import threading
from decimal import Decimal

from portfolio_cache.domain import AssetType
from portfolio_cache.exceptions import PriceSourceError
from portfolio_cache.services import PriceQuote
from portfolio_cache.services.price_source import resolve_prices


class SlowSource:
    """Blocks on one symbol until released."""

    def __init__(self, slow_symbol):
        self.slow_symbol = slow_symbol
        self.release = threading.Event()

    def fetch_price(self, symbol, asset_type):
        if symbol == self.slow_symbol:
            self.release.wait(5)
        return PriceQuote(price=Decimal("1.00"), currency="USD", source="finnhub")


class TestResolvePrices:
    def test_all_succeed(self, fake_source):
        resolution = resolve_prices(
            fake_source, [("AAPL", AssetType.STOCK), ("BTC", AssetType.CRYPTO)], 5
        )

        prices = {e.symbol: e for e in resolution.entries}
        assert prices["AAPL"].price == Decimal("189.50")
        assert prices["AAPL"].currency == "USD"
        assert prices["BTC"].asset_type == AssetType.CRYPTO
        assert resolution.failures == {}

    def test_failures_do_not_affect_siblings(self, fake_source):
        fake_source.failing.add("GOOGL")

        resolution = resolve_prices(
            fake_source, [("AAPL", AssetType.STOCK), ("GOOGL", AssetType.STOCK)], 5
        )

        assert [e.symbol for e in resolution.entries] == ["AAPL"]
        assert resolution.failed_symbols == ["GOOGL"]
        assert resolution.errors == ["stock:GOOGL: quote unavailable"]

    def test_non_positive_price_is_a_failure(self, fake_source):
        fake_source.prices["AAPL"] = "0"

        resolution = resolve_prices(fake_source, [("AAPL", AssetType.STOCK)], 5)

        assert resolution.entries == []
        assert resolution.failed_symbols == ["AAPL"]

    def test_slow_symbol_times_out(self):
        source = SlowSource("MSFT")
        try:
            resolution = resolve_prices(
                source, [("AAPL", AssetType.STOCK), ("MSFT", AssetType.STOCK)], 0.2
            )
        finally:
            source.release.set()

        assert [e.symbol for e in resolution.entries] == ["AAPL"]
        error = resolution.failures[("MSFT", AssetType.STOCK)]
        assert isinstance(error, PriceSourceError)
        assert error.reason == "timed out after 0.2s"
        assert str(error) == "stock:MSFT: timed out after 0.2s"

    def test_no_targets(self, fake_source):
        resolution = resolve_prices(fake_source, [], 5)
        assert resolution.entries == []
        assert fake_source.calls == []

    def test_blank_currency_fails_only_that_symbol(self, fake_source):
        fake_source.currencies["BAD"] = ""

        resolution = resolve_prices(
            fake_source, [("AAPL", AssetType.STOCK), ("BAD", AssetType.STOCK)], 5
        )

        assert [e.symbol for e in resolution.entries] == ["AAPL"]
        assert resolution.failures[("BAD", AssetType.STOCK)].reason == "currency is required"

    def test_currency_must_be_three_letters(self, fake_source):
        fake_source.currencies["BTC"] = "usdt"

        resolution = resolve_prices(fake_source, [("BTC", AssetType.CRYPTO)], 5)

        assert resolution.entries == []
        assert resolution.errors == ["crypto:BTC: currency must be a 3-letter code"]

    def test_unexpected_errors_are_wrapped(self):
        class BrokenSource:
            def fetch_price(self, symbol, asset_type):
                raise ConnectionError("connection reset")

        resolution = resolve_prices(BrokenSource(), [("AAPL", AssetType.STOCK)], 5)

        error = resolution.failures[("AAPL", AssetType.STOCK)]
        assert isinstance(error, PriceSourceError)
        assert isinstance(error.original_error, ConnectionError)
        assert error.reason == "connection reset"
