"""Pure functions classifying cache entry age against a TTL policy."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from portfolio_cache.config import DEFAULT_TTL_MINUTES, MAX_STALE_HOURS
from portfolio_cache.domain import AssetType, PortfolioSymbols, PriceCacheEntry
from portfolio_cache.utils.clock import ensure_utc, utc_now

FRESH = "fresh"
STALE = "stale"
MISSING = "missing"


def cache_age_minutes(last_updated: datetime, now: datetime | None = None) -> int:
    """Whole minutes elapsed since last_updated (floored)."""
    now = ensure_utc(now or utc_now())
    elapsed = now - ensure_utc(last_updated)
    return int(elapsed.total_seconds() // 60)


def is_fresh(
    last_updated: datetime,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    now: datetime | None = None,
) -> bool:
    return cache_age_minutes(last_updated, now) <= ttl_minutes


def is_usable(
    last_updated: datetime,
    max_stale_hours: int = MAX_STALE_HOURS,
    now: datetime | None = None,
) -> bool:
    """Stale but still presentable with a "stale" badge."""
    return cache_age_minutes(last_updated, now) <= max_stale_hours * 60


@dataclass
class FreshnessStatus:
    symbol: str
    asset_type: AssetType
    status: str  # fresh, stale, missing
    last_updated: datetime | None = None
    age_minutes: int | None = None
    should_update: bool = True


def freshness_status(
    symbol: str,
    asset_type: AssetType,
    entry: PriceCacheEntry | None,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    now: datetime | None = None,
) -> FreshnessStatus:
    """Classify a single symbol's cache entry."""
    if entry is None or entry.last_updated is None:
        return FreshnessStatus(symbol=symbol, asset_type=asset_type, status=MISSING)

    age = cache_age_minutes(entry.last_updated, now)
    fresh = age <= ttl_minutes
    return FreshnessStatus(
        symbol=symbol,
        asset_type=asset_type,
        status=FRESH if fresh else STALE,
        last_updated=ensure_utc(entry.last_updated),
        age_minutes=age,
        should_update=not fresh,
    )


@dataclass
class FreshnessResult:
    """Every input symbol lands in exactly one of fresh, stale or missing."""

    fresh: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    total_symbols: int = 0
    fresh_percentage: float = 0.0


def analyze_freshness(
    symbols: list[str],
    asset_type: AssetType,
    cache: Mapping[str, PriceCacheEntry],
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    now: datetime | None = None,
) -> FreshnessResult:
    """
    Bucket symbols by the freshness of their cache entries.

    Args:
        symbols: Normalized symbols to classify
        asset_type: Asset type the symbols belong to
        cache: Entries keyed by normalized symbol; absent keys are missing
        ttl_minutes: Maximum age (inclusive) for an entry to count as fresh
        now: Reference time, defaults to the current UTC time

    Returns:
        FreshnessResult with the three buckets and the fresh percentage
        (0 when symbols is empty)
    """
    now = now or utc_now()
    result = FreshnessResult(total_symbols=len(symbols))

    for symbol in symbols:
        status = freshness_status(symbol, asset_type, cache.get(symbol), ttl_minutes, now)
        if status.status == FRESH:
            result.fresh.append(symbol)
        elif status.status == STALE:
            result.stale.append(symbol)
        else:
            result.missing.append(symbol)

    if result.total_symbols > 0:
        result.fresh_percentage = len(result.fresh) / result.total_symbols * 100
    return result


@dataclass
class SyncComparison:
    """Symbols partitioned by whether the user's bookmark or the cache is newer."""

    user_newer: list[str] = field(default_factory=list)
    cache_newer: list[str] = field(default_factory=list)
    equal: list[str] = field(default_factory=list)


def compare_sync_to_cache(
    user_last_sync: datetime, cache_timestamps: Mapping[str, datetime]
) -> SyncComparison:
    user_sync = ensure_utc(user_last_sync)
    comparison = SyncComparison()

    for symbol, cache_time in cache_timestamps.items():
        cache_time = ensure_utc(cache_time)
        if user_sync > cache_time:
            comparison.user_newer.append(symbol)
        elif cache_time > user_sync:
            comparison.cache_newer.append(symbol)
        else:
            comparison.equal.append(symbol)

    return comparison


@dataclass
class FreshnessOverview:
    total_symbols: int
    fresh_symbols: int
    stale_symbols: int
    missing_symbols: int
    overall_freshness: float


@dataclass
class FreshnessReport:
    stocks: FreshnessResult
    crypto: FreshnessResult
    overall: FreshnessOverview
    recommendations: list[str]


def freshness_report(
    portfolio: PortfolioSymbols,
    stock_cache: Mapping[str, PriceCacheEntry],
    crypto_cache: Mapping[str, PriceCacheEntry],
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    now: datetime | None = None,
) -> FreshnessReport:
    """Combine stock and crypto freshness into one portfolio-wide summary."""
    now = now or utc_now()
    stocks = analyze_freshness(portfolio.stocks, AssetType.STOCK, stock_cache, ttl_minutes, now)
    crypto = analyze_freshness(portfolio.crypto, AssetType.CRYPTO, crypto_cache, ttl_minutes, now)

    total = stocks.total_symbols + crypto.total_symbols
    fresh = len(stocks.fresh) + len(crypto.fresh)
    stale = len(stocks.stale) + len(crypto.stale)
    missing = len(stocks.missing) + len(crypto.missing)
    overall_freshness = fresh / total * 100 if total > 0 else 0.0

    recommendations: list[str] = []
    if overall_freshness < 50:
        recommendations.append("Consider requesting a cache update to improve data freshness")
    if missing > 0:
        recommendations.append(f"{missing} symbols are missing from cache and need to be fetched")
    if stale > fresh:
        recommendations.append(
            "More symbols are stale than fresh, consider reducing TTL or increasing update frequency"
        )

    return FreshnessReport(
        stocks=stocks,
        crypto=crypto,
        overall=FreshnessOverview(
            total_symbols=total,
            fresh_symbols=fresh,
            stale_symbols=stale,
            missing_symbols=missing,
            overall_freshness=overall_freshness,
        ),
        recommendations=recommendations,
    )
