"""Facade over the price cache: the entry point dashboards call."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from portfolio_cache.calculations import (
    UpdatePlan,
    UpdateStrategy,
    analyze_freshness,
    cache_efficiency,
    compare_sync_to_cache,
    freshness_report,
    hit_rate,
    is_usable,
    plan_update,
    recommend_update,
)
from portfolio_cache.config import CacheOptions
from portfolio_cache.domain import (
    AssetType,
    CacheUpdateRequest,
    PortfolioSymbols,
    PriceCacheEntry,
    UserSyncRecord,
    is_valid_entry,
)
from portfolio_cache.exceptions import PortfolioCacheError
from portfolio_cache.services.cache_request_log import CacheRequestLog
from portfolio_cache.services.price_cache_store import CacheStatistics, PriceCacheStore
from portfolio_cache.services.price_source import PriceSource, resolve_prices
from portfolio_cache.services.sync_timestamp_store import SyncTimestampStore
from portfolio_cache.utils.clock import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Errors recovered into typed results at the facade boundary
RECOVERABLE_ERRORS = (PortfolioCacheError, SQLAlchemyError)

SymbolsInput = PortfolioSymbols | dict


@dataclass
class PortfolioMetadata:
    last_updated: datetime
    cache_hit_rate: float
    total_symbols: int
    cached_symbols: int
    fresh_symbols: int
    stale_symbols: int


@dataclass
class PortfolioData:
    """
    Fresh cached prices for a portfolio.

    Stale and missing symbols are absent from stocks/crypto; the plans list
    them under update_required for the caller to refetch.
    """

    stocks: dict[str, PriceCacheEntry]
    crypto: dict[str, PriceCacheEntry]
    metadata: PortfolioMetadata
    plans: dict[AssetType, UpdatePlan]
    error: str | None = None


@dataclass
class CacheUpdateResult:
    success: bool = False
    updated_symbols: list[str] = field(default_factory=list)
    failed_symbols: list[str] = field(default_factory=list)
    cache_hits: list[str] = field(default_factory=list)
    api_calls: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class Staleness:
    stocks: float
    crypto: float
    overall: float


@dataclass
class UpdateCheck:
    should_update: bool
    reason: str
    staleness: Staleness


@dataclass
class CacheStats:
    total_symbols: int = 0
    cached_symbols: int = 0
    fresh_symbols: int = 0
    stale_symbols: int = 0
    missing_symbols: int = 0
    cache_hit_rate: float = 0.0
    average_age: float = 0.0  # minutes, over entries present in the cache
    last_sync: datetime | None = None
    error: str | None = None


@dataclass
class IntegrityIssue:
    symbol: str
    asset_type: str
    issue: str
    severity: str  # low, medium, high


@dataclass
class IntegrityReport:
    is_valid: bool
    issues: list[IntegrityIssue]
    recommendations: list[str]


@dataclass
class CleanupResult:
    deleted_entries: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class StaleSymbols:
    asset_type: AssetType
    symbols: list[str] = field(default_factory=list)  # oldest first
    errors: list[str] = field(default_factory=list)


@dataclass
class UpdateRequestHistory:
    requests: list[CacheUpdateRequest] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class PerformanceMetrics:
    """Cache effectiveness over a user's completed update requests."""

    efficiency: str = "poor"  # excellent, good, fair, poor
    hit_rate: float = 0.0
    miss_rate: float = 0.0
    total_lookups: int = 0
    cache_hits: int = 0
    api_calls: int = 0
    average_response_ms: float = 0.0
    recommendations: list[str] = field(default_factory=list)
    error: str | None = None


class CachePriceService:
    """
    Decides whether to serve cached prices or refetch, and keeps the shared
    cache and each user's sync bookmark up to date.

    Storage failures never escape: every method returns a typed result.
    """

    def __init__(
        self,
        price_store: PriceCacheStore,
        sync_store: SyncTimestampStore,
        request_log: CacheRequestLog,
        price_source: PriceSource | None = None,
        options: CacheOptions | None = None,
        clock: Clock = utc_now,
    ):
        self._price_store = price_store
        self._sync_store = sync_store
        self._request_log = request_log
        self._price_source = price_source
        self._options = options or CacheOptions()
        self._clock = clock

    @classmethod
    def from_session_factory(
        cls,
        session_factory: sessionmaker,
        price_source: PriceSource | None = None,
        options: CacheOptions | None = None,
        clock: Clock = utc_now,
    ) -> "CachePriceService":
        """Wire the default SQLAlchemy-backed stores."""
        options = options or CacheOptions()
        return cls(
            price_store=PriceCacheStore(session_factory, batch_size=options.batch_size, clock=clock),
            sync_store=SyncTimestampStore(session_factory, clock=clock),
            request_log=CacheRequestLog(session_factory, clock=clock),
            price_source=price_source,
            options=options,
            clock=clock,
        )

    @property
    def options(self) -> CacheOptions:
        return self._options

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def _read_cache(
        self, symbols: PortfolioSymbols, valid_only: bool = True
    ) -> tuple[dict[str, PriceCacheEntry], dict[str, PriceCacheEntry]]:
        """Read stock and crypto entries concurrently."""
        with ThreadPoolExecutor(max_workers=2) as executor:
            stocks = executor.submit(self._price_store.get, symbols.stocks, AssetType.STOCK)
            crypto = executor.submit(self._price_store.get, symbols.crypto, AssetType.CRYPTO)
            stock_cache, crypto_cache = stocks.result(), crypto.result()

        if valid_only:
            # Malformed rows are treated as missing
            stock_cache = {s: e for s, e in stock_cache.items() if is_valid_entry(e)}
            crypto_cache = {s: e for s, e in crypto_cache.items() if is_valid_entry(e)}
        return stock_cache, crypto_cache

    def _plan(
        self,
        symbols: list[str],
        asset_type: AssetType,
        cache: dict[str, PriceCacheEntry],
        user_sync: UserSyncRecord | None,
        now: datetime,
    ) -> UpdatePlan:
        freshness = analyze_freshness(symbols, asset_type, cache, self._options.ttl_minutes, now)
        comparison = None
        if user_sync is not None and cache:
            comparison = compare_sync_to_cache(
                user_sync.last_sync_timestamp,
                {s: e.last_updated for s, e in cache.items()},
            )
        return plan_update(freshness, comparison)

    def get_portfolio_data(self, user_id: str, symbols: SymbolsInput) -> PortfolioData:
        """
        Get fresh cached prices for a user's portfolio.

        Only fresh entries are returned. cache_hit_rate counts every symbol
        present in the cache (stale included); fresh_symbols/stale_symbols
        come from the freshness classification.
        """
        symbols = PortfolioSymbols.coerce(symbols)
        now = self._now()

        try:
            user_sync = self._sync_store.get(user_id)
            stock_cache, crypto_cache = self._read_cache(symbols)
        except RECOVERABLE_ERRORS as e:
            logger.exception("Failed to read portfolio cache for user %s", user_id)
            return self._failed_portfolio_data(symbols, now, str(e))

        plans = {
            AssetType.STOCK: self._plan(symbols.stocks, AssetType.STOCK, stock_cache, user_sync, now),
            AssetType.CRYPTO: self._plan(symbols.crypto, AssetType.CRYPTO, crypto_cache, user_sync, now),
        }
        stock_plan, crypto_plan = plans[AssetType.STOCK], plans[AssetType.CRYPTO]

        cached = len(stock_cache) + len(crypto_cache)
        fresh = len(stock_plan.use_cache) + len(crypto_plan.use_cache)
        stale = sum(
            1 for s in stock_plan.update_required if s in stock_cache
        ) + sum(1 for s in crypto_plan.update_required if s in crypto_cache)

        return PortfolioData(
            stocks={s: stock_cache[s] for s in stock_plan.use_cache},
            crypto={s: crypto_cache[s] for s in crypto_plan.use_cache},
            metadata=PortfolioMetadata(
                last_updated=now,
                cache_hit_rate=hit_rate(cached, symbols.total),
                total_symbols=symbols.total,
                cached_symbols=cached,
                fresh_symbols=fresh,
                stale_symbols=stale,
            ),
            plans=plans,
        )

    @staticmethod
    def _failed_portfolio_data(
        symbols: PortfolioSymbols, now: datetime, error: str
    ) -> PortfolioData:
        """Everything requested is reported as missing."""

        def refetch_all(items: list[str]) -> UpdatePlan:
            return UpdatePlan(
                update_required=list(items),
                use_cache=[],
                strategy=UpdateStrategy.FULL_UPDATE,
                reasoning="Cache unavailable, full update required",
            )

        return PortfolioData(
            stocks={},
            crypto={},
            metadata=PortfolioMetadata(
                last_updated=now,
                cache_hit_rate=0.0,
                total_symbols=symbols.total,
                cached_symbols=0,
                fresh_symbols=0,
                stale_symbols=0,
            ),
            plans={
                AssetType.STOCK: refetch_all(symbols.stocks),
                AssetType.CRYPTO: refetch_all(symbols.crypto),
            },
            error=error,
        )

    def update_portfolio_cache(
        self, user_id: str, symbols: SymbolsInput, only_stale: bool = False
    ) -> CacheUpdateResult:
        """
        Fetch prices from the price source and write them to the cache.

        The request is logged before any data is written, and the user's
        sync bookmark only advances after the price write commits. A symbol
        the source cannot quote is reported in failed_symbols without
        affecting the others; a storage failure fails the whole call.

        Args:
            user_id: User requesting the refresh
            symbols: Portfolio symbols to refresh
            only_stale: Serve fresh symbols from cache (reported as
                cache_hits) and only quote stale or missing ones
        """
        symbols = PortfolioSymbols.coerce(symbols)
        result = CacheUpdateResult()

        if self._price_source is None:
            result.failed_symbols = symbols.all_symbols()
            result.errors.append("No price source configured")
            return result

        request_id: int | None = None
        try:
            request_id = self._request_log.start(user_id, symbols.all_symbols())

            targets = symbols.pairs()
            if only_stale:
                targets, result.cache_hits = self._stale_targets(symbols)

            resolution = resolve_prices(
                self._price_source,
                targets,
                timeout_seconds=self._options.source_timeout_seconds,
                max_workers=self._options.source_max_workers,
            )
            result.api_calls = len(targets)

            written = self._price_store.put_many(resolution.entries)
            if written or not targets:
                self._sync_store.upsert(user_id, symbols)

            result.updated_symbols = [e.symbol for e in written]
            result.failed_symbols = resolution.failed_symbols
            result.errors = resolution.errors
            self._request_log.complete(
                request_id,
                result.updated_symbols,
                result.failed_symbols,
                cache_hits=result.cache_hits,
                api_calls=result.api_calls,
            )
        except RECOVERABLE_ERRORS as e:
            logger.exception("Cache update failed for user %s", user_id)
            result.updated_symbols = []
            result.cache_hits = []
            result.failed_symbols = symbols.all_symbols()
            result.errors = [str(e)]
            if request_id is not None:
                self._mark_request_failed(request_id, str(e), result.failed_symbols)
            return result

        result.success = not result.failed_symbols
        logger.info(
            "Cache update for user %s: %d updated, %d failed, %d cache hits",
            user_id,
            len(result.updated_symbols),
            len(result.failed_symbols),
            len(result.cache_hits),
        )
        return result

    def _stale_targets(
        self, symbols: PortfolioSymbols
    ) -> tuple[list[tuple[str, AssetType]], list[str]]:
        now = self._now()
        stock_cache, crypto_cache = self._read_cache(symbols)
        targets: list[tuple[str, AssetType]] = []
        hits: list[str] = []
        for asset_type, cache in ((AssetType.STOCK, stock_cache), (AssetType.CRYPTO, crypto_cache)):
            plan = self._plan(symbols.for_type(asset_type), asset_type, cache, None, now)
            targets.extend((s, asset_type) for s in plan.update_required)
            hits.extend(plan.use_cache)
        return targets, hits

    def _mark_request_failed(self, request_id: int, error: str, failed: list[str]) -> None:
        try:
            self._request_log.fail(request_id, error, failed)
        except RECOVERABLE_ERRORS:
            logger.warning("Could not mark cache request %s as failed", request_id)

    def should_update_cache(self, user_id: str, symbols: SymbolsInput) -> UpdateCheck:
        """Recommend a refresh when average freshness falls below the threshold."""
        symbols = PortfolioSymbols.coerce(symbols)
        now = self._now()

        try:
            stock_cache, crypto_cache = self._read_cache(symbols)
        except RECOVERABLE_ERRORS:
            logger.exception("Failed to check cache freshness for user %s", user_id)
            return UpdateCheck(
                should_update=True,
                reason="Error checking cache status, update recommended",
                staleness=Staleness(stocks=100.0, crypto=100.0, overall=100.0),
            )

        ttl = self._options.ttl_minutes
        stock_freshness = analyze_freshness(symbols.stocks, AssetType.STOCK, stock_cache, ttl, now)
        crypto_freshness = analyze_freshness(symbols.crypto, AssetType.CRYPTO, crypto_cache, ttl, now)
        recommendation = recommend_update(
            stock_freshness.fresh_percentage, crypto_freshness.fresh_percentage
        )

        return UpdateCheck(
            should_update=recommendation.should_update,
            reason=recommendation.reason,
            staleness=Staleness(
                stocks=100 - stock_freshness.fresh_percentage,
                crypto=100 - crypto_freshness.fresh_percentage,
                overall=100 - recommendation.overall_freshness,
            ),
        )

    def get_cache_stats(self, user_id: str, symbols: SymbolsInput) -> CacheStats:
        """Cache coverage and age for a user's portfolio."""
        symbols = PortfolioSymbols.coerce(symbols)
        now = self._now()

        try:
            user_sync = self._sync_store.get(user_id)
            stock_cache, crypto_cache = self._read_cache(symbols)
        except RECOVERABLE_ERRORS as e:
            logger.exception("Failed to get cache stats for user %s", user_id)
            return CacheStats(
                total_symbols=symbols.total,
                missing_symbols=symbols.total,
                error=str(e),
            )

        report = freshness_report(
            symbols, stock_cache, crypto_cache, self._options.ttl_minutes, now
        )

        entries = [*stock_cache.values(), *crypto_cache.values()]
        ages = [(now - ensure_utc(e.last_updated)).total_seconds() / 60 for e in entries]
        cached = len(entries)

        return CacheStats(
            total_symbols=report.overall.total_symbols,
            cached_symbols=cached,
            fresh_symbols=report.overall.fresh_symbols,
            stale_symbols=report.overall.stale_symbols,
            missing_symbols=report.overall.missing_symbols,
            cache_hit_rate=hit_rate(cached, report.overall.total_symbols),
            average_age=sum(ages) / len(ages) if ages else 0.0,
            last_sync=user_sync.last_sync_timestamp if user_sync else None,
        )

    def validate_cache_integrity(self, symbols: SymbolsInput) -> IntegrityReport:
        """Check cached entries for structural problems, bad prices and old age."""
        symbols = PortfolioSymbols.coerce(symbols)
        now = self._now()

        try:
            stock_cache, crypto_cache = self._read_cache(symbols, valid_only=False)
        except RECOVERABLE_ERRORS:
            logger.exception("Failed to validate cache integrity")
            return IntegrityReport(
                is_valid=False,
                issues=[
                    IntegrityIssue(
                        symbol="system",
                        asset_type=AssetType.STOCK.value,
                        issue="Failed to validate cache integrity",
                        severity="high",
                    )
                ],
                recommendations=["Check database connectivity and permissions"],
            )

        issues: list[IntegrityIssue] = []
        for asset_type, cache in ((AssetType.STOCK, stock_cache), (AssetType.CRYPTO, crypto_cache)):
            for symbol, entry in cache.items():
                issues.extend(self._entry_issues(symbol, asset_type, entry, now))

        high = [i for i in issues if i.severity == "high"]
        medium = [i for i in issues if i.severity == "medium"]

        recommendations: list[str] = []
        if high:
            recommendations.append("Immediate cache cleanup required for invalid entries")
        if medium:
            recommendations.append("Consider updating stale cache entries")
        if not issues:
            recommendations.append("Cache integrity is good, no issues detected")

        return IntegrityReport(is_valid=not high, issues=issues, recommendations=recommendations)

    def _entry_issues(
        self, symbol: str, asset_type: AssetType, entry: PriceCacheEntry, now: datetime
    ) -> list[IntegrityIssue]:
        issues: list[IntegrityIssue] = []

        def add(issue: str, severity: str) -> None:
            issues.append(IntegrityIssue(symbol, asset_type.value, issue, severity))

        if not is_valid_entry(entry):
            add("Invalid cache data structure", "high")
        if entry.price is None or entry.price <= 0:
            add("Invalid price value", "high")
        if entry.last_updated is not None and not is_usable(
            entry.last_updated, self._options.max_stale_hours, now
        ):
            add("Cache entry is too old", "medium")
        return issues

    def get_global_cache_statistics(self) -> CacheStatistics | None:
        """Cache-wide counts, or None if the store is unavailable."""
        try:
            return self._price_store.statistics(self._options.ttl_minutes)
        except RECOVERABLE_ERRORS:
            logger.exception("Failed to get global cache statistics")
            return None

    def cleanup_stale_cache(self, max_age_hours: int | None = None) -> CleanupResult:
        """Purge entries older than max_age_hours (default: max_stale_hours)."""
        hours = max_age_hours if max_age_hours is not None else self._options.max_stale_hours
        try:
            return CleanupResult(deleted_entries=self._price_store.purge_older_than(hours))
        except RECOVERABLE_ERRORS as e:
            logger.exception("Failed to clean up stale cache")
            return CleanupResult(errors=[str(e)])

    def list_stale_symbols(self, asset_type: AssetType) -> StaleSymbols:
        """Symbols past the TTL for a maintenance sweep, oldest first."""
        try:
            symbols = self._price_store.list_stale(asset_type, self._options.ttl_minutes)
        except RECOVERABLE_ERRORS as e:
            logger.exception("Failed to list stale %s symbols", AssetType(asset_type).value)
            return StaleSymbols(asset_type=asset_type, errors=[str(e)])
        return StaleSymbols(asset_type=asset_type, symbols=symbols)

    def recent_update_requests(self, user_id: str, limit: int = 20) -> UpdateRequestHistory:
        """A user's latest update attempts, newest first (observability only)."""
        try:
            return UpdateRequestHistory(requests=self._request_log.recent(user_id, limit))
        except RECOVERABLE_ERRORS as e:
            logger.exception("Failed to read cache requests for user %s", user_id)
            return UpdateRequestHistory(errors=[str(e)])

    def get_performance_metrics(
        self, user_id: str, time_window_hours: int = 24
    ) -> PerformanceMetrics:
        """
        Grade cache effectiveness from a user's completed update requests.

        Every symbol served from cache during an update counts as a hit and
        every symbol quoted from the price source as a miss. Only requests
        made within the last time_window_hours are considered.
        """
        since = self._now() - timedelta(hours=time_window_hours)
        try:
            requests = self._request_log.completed_since(user_id, since)
        except RECOVERABLE_ERRORS as e:
            logger.exception("Failed to get performance metrics for user %s", user_id)
            return PerformanceMetrics(error=str(e))

        hits = sum(len(r.cache_hits) for r in requests)
        calls = sum(r.api_calls for r in requests)
        graded = cache_efficiency(hits + calls, hits, calls)

        durations = [
            (r.completed_at - r.requested_at).total_seconds() * 1000
            for r in requests
            if r.completed_at is not None
        ]

        recommendations = graded.recommendations
        if not requests:
            recommendations = [f"No cache updates recorded in the last {time_window_hours} hours"]

        return PerformanceMetrics(
            efficiency=graded.efficiency,
            hit_rate=graded.hit_rate,
            miss_rate=graded.miss_rate,
            total_lookups=hits + calls,
            cache_hits=hits,
            api_calls=calls,
            average_response_ms=sum(durations) / len(durations) if durations else 0.0,
            recommendations=recommendations,
        )
