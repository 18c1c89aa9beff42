"""Domain types for cached prices, user sync bookmarks and update requests."""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class AssetType(str, Enum):
    STOCK = "stock"
    CRYPTO = "crypto"


class PriceSourceName(str, Enum):
    """Known external price sources."""

    FINNHUB = "finnhub"
    ALPHA_VANTAGE = "alphavantage"


class CacheRequestStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def make_cache_key(symbol: str, asset_type: AssetType) -> str:
    """Build the derived key, e.g. ("aapl", STOCK) -> "stock_AAPL"."""
    return f"{AssetType(asset_type).value}_{normalize_symbol(symbol)}"


def parse_cache_key(key: str) -> tuple[str, AssetType] | None:
    """Split a derived key into (symbol, asset_type), or None if malformed."""
    # Symbols may themselves contain "_" (BRK_B)
    parts = key.split("_", 1)
    if len(parts) != 2:
        return None
    prefix, symbol = parts
    try:
        asset_type = AssetType(prefix)
    except ValueError:
        return None
    if not symbol:
        return None
    return symbol, asset_type


@dataclass(frozen=True)
class PriceMetadata:
    """Optional market detail reported alongside a price."""

    change: float | None = None
    change_percent: float | None = None
    volume: int | None = None
    market_cap: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PriceMetadata | None":
        if not data:
            return None
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


@dataclass(frozen=True)
class PriceCacheEntry:
    """
    Latest known price for one (asset_type, symbol).

    last_updated is stamped by the store on write; values supplied by
    callers are replaced.
    """

    symbol: str
    asset_type: AssetType
    price: Decimal
    currency: str
    source: str
    last_updated: datetime | None = None
    metadata: PriceMetadata | None = None

    @property
    def cache_key(self) -> str:
        return make_cache_key(self.symbol, self.asset_type)

    @classmethod
    def create(
        cls,
        symbol: str,
        asset_type: AssetType,
        price: Decimal | float | int,
        currency: str,
        source: str,
        metadata: PriceMetadata | None = None,
    ) -> "PriceCacheEntry":
        """Build an entry with normalized symbol and currency."""
        return cls(
            symbol=normalize_symbol(symbol),
            asset_type=AssetType(asset_type),
            price=price if isinstance(price, Decimal) else Decimal(str(price)),
            currency=currency.strip().upper(),
            source=source.value if isinstance(source, Enum) else source,
            metadata=metadata,
        )

    def stamped(self, when: datetime) -> "PriceCacheEntry":
        return replace(self, last_updated=when)


def validate_entry(entry: PriceCacheEntry) -> list[str]:
    """Return the structural problems with an entry; empty means valid."""
    problems: list[str] = []
    if not entry.symbol:
        problems.append("symbol is required")
    if entry.asset_type not in (AssetType.STOCK, AssetType.CRYPTO):
        problems.append("asset_type must be stock or crypto")
    if entry.price is None or entry.price <= 0:
        problems.append("price must be greater than zero")
    if not entry.currency:
        problems.append("currency is required")
    elif len(entry.currency) != 3 or not entry.currency.isalpha():
        problems.append("currency must be a 3-letter code")
    if not entry.source:
        problems.append("source is required")
    if entry.last_updated is None:
        problems.append("last_updated is required")
    return problems


def is_valid_entry(entry: PriceCacheEntry) -> bool:
    return not validate_entry(entry)


def _dedupe(symbols: list[str] | tuple[str, ...] | set[str] | None) -> list[str]:
    seen: list[str] = []
    for symbol in symbols or []:
        normalized = normalize_symbol(symbol)
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen


@dataclass
class PortfolioSymbols:
    """Normalized, de-duplicated symbols a portfolio holds, split by asset type."""

    stocks: list[str] = field(default_factory=list)
    crypto: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.stocks = _dedupe(self.stocks)
        self.crypto = _dedupe(self.crypto)

    @classmethod
    def coerce(cls, value: "PortfolioSymbols | dict[str, Any]") -> "PortfolioSymbols":
        if isinstance(value, PortfolioSymbols):
            return value
        return cls(stocks=value.get("stocks") or [], crypto=value.get("crypto") or [])

    def for_type(self, asset_type: AssetType) -> list[str]:
        return self.stocks if asset_type == AssetType.STOCK else self.crypto

    def pairs(self) -> list[tuple[str, AssetType]]:
        return [(s, AssetType.STOCK) for s in self.stocks] + [
            (s, AssetType.CRYPTO) for s in self.crypto
        ]

    def all_symbols(self) -> list[str]:
        return self.stocks + self.crypto

    @property
    def total(self) -> int:
        return len(self.stocks) + len(self.crypto)

    def to_dict(self) -> dict[str, list[str]]:
        return {"stocks": list(self.stocks), "crypto": list(self.crypto)}


@dataclass
class UserSyncRecord:
    """A user's private bookmark into the shared cache timeline."""

    user_id: str
    last_sync_timestamp: datetime
    portfolio_symbols: PortfolioSymbols
    updated_at: datetime


@dataclass
class CacheUpdateRequest:
    """Audit row for one update attempt. Observability only."""

    id: int
    user_id: str
    symbols: list[str]
    status: CacheRequestStatus
    requested_at: datetime
    updated_symbols: list[str] = field(default_factory=list)
    failed_symbols: list[str] = field(default_factory=list)
    cache_hits: list[str] = field(default_factory=list)
    api_calls: int = 0
    error_message: str | None = None
    completed_at: datetime | None = None
