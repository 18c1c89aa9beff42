"""Custom exceptions for the portfolio price cache."""


class PortfolioCacheError(Exception):
    """Base exception for the portfolio price cache."""

    pass


class ValidationError(PortfolioCacheError):
    """Raised when a price cache entry fails validation before a write."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        symbol: str | None = None,
    ):
        self.field = field
        self.symbol = symbol
        super().__init__(message)


class StorageError(PortfolioCacheError):
    """Raised when the backing store is unreachable or rejects an operation."""

    def __init__(self, message: str, original_error: Exception | None = None):
        self.original_error = original_error
        super().__init__(message)


class PriceSourceError(PortfolioCacheError):
    """
    Raised when an external price source fails for a symbol.

    PriceSource implementations raise it for quotes they cannot provide;
    resolve_prices wraps any other per-symbol failure (errors, timeouts,
    unusable quotes) in it.
    """

    def __init__(
        self,
        message: str,
        symbol: str,
        asset_type: str,
        original_error: Exception | None = None,
    ):
        self.reason = message
        self.symbol = symbol
        self.asset_type = asset_type
        self.original_error = original_error
        super().__init__(f"{asset_type}:{symbol}: {message}")


class ConfigurationError(PortfolioCacheError):
    """Raised when there's a configuration issue."""

    pass
