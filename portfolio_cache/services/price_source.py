"""External price source contract and bounded-time price resolution."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Protocol

from portfolio_cache.domain import AssetType, PriceCacheEntry, PriceMetadata, validate_entry
from portfolio_cache.exceptions import PriceSourceError
from portfolio_cache.utils.clock import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    """A price as reported by an external source."""

    price: Decimal
    currency: str
    source: str
    metadata: PriceMetadata | None = None


class PriceSource(Protocol):
    """
    Anything that can quote a symbol.

    Implementations own their HTTP/SDK details and any retry policy
    (see RETRY_ATTEMPTS / RETRY_DELAY_MS in config). They raise
    PriceSourceError for a symbol they cannot quote.
    """

    def fetch_price(self, symbol: str, asset_type: AssetType) -> PriceQuote:
        ...


@dataclass
class PriceResolution:
    """Outcome of resolving a set of symbols; failures do not affect siblings."""

    entries: list[PriceCacheEntry] = field(default_factory=list)
    failures: dict[tuple[str, AssetType], PriceSourceError] = field(default_factory=dict)

    @property
    def failed_symbols(self) -> list[str]:
        return [symbol for symbol, _ in self.failures]

    @property
    def errors(self) -> list[str]:
        return [str(error) for error in self.failures.values()]


def _to_entry(symbol: str, asset_type: AssetType, quote: PriceQuote) -> PriceCacheEntry:
    """
    Convert a quote to an entry the store will accept.

    Raises:
        PriceSourceError: the quote has no usable price, or would fail the
            store's write validation (blank source, bad currency code, ...)
    """
    if quote is None or quote.price is None:
        raise PriceSourceError("no price returned", symbol, asset_type.value)
    try:
        price = quote.price if isinstance(quote.price, Decimal) else Decimal(str(quote.price))
    except InvalidOperation as e:
        raise PriceSourceError(
            f"unparseable price {quote.price!r}", symbol, asset_type.value, e
        ) from e

    entry = PriceCacheEntry.create(
        symbol, asset_type, price, quote.currency or "", quote.source or "", quote.metadata
    )
    # The store restamps on write; a provisional stamp lets the full rule set run here
    problems = validate_entry(entry.stamped(utc_now()))
    if problems:
        raise PriceSourceError("; ".join(problems), symbol, asset_type.value)
    return entry


def _as_source_error(symbol: str, asset_type: AssetType, error: Exception) -> PriceSourceError:
    if isinstance(error, PriceSourceError):
        return error
    return PriceSourceError(str(error) or type(error).__name__, symbol, asset_type.value, error)


def resolve_prices(
    source: PriceSource,
    targets: list[tuple[str, AssetType]],
    timeout_seconds: float,
    max_workers: int = 8,
) -> PriceResolution:
    """
    Quote every (symbol, asset_type) concurrently within timeout_seconds.

    Symbols whose call raises, returns an unusable quote, or has not
    finished when the timeout expires are reported as PriceSourceError
    failures. Only entries that pass write validation are returned, so one
    bad quote cannot reject a sibling's write. Nothing is retried here.
    """
    resolution = PriceResolution()
    if not targets:
        return resolution

    executor = ThreadPoolExecutor(max_workers=min(max_workers, len(targets)))
    try:
        futures: dict[Future, tuple[str, AssetType]] = {
            executor.submit(source.fetch_price, symbol, asset_type): (symbol, asset_type)
            for symbol, asset_type in targets
        }
        done, not_done = wait(futures, timeout=timeout_seconds)

        for future, (symbol, asset_type) in futures.items():
            if future in not_done:
                future.cancel()
                resolution.failures[(symbol, asset_type)] = PriceSourceError(
                    f"timed out after {timeout_seconds:g}s", symbol, asset_type.value
                )
                logger.warning("Price source timed out for %s %s", asset_type.value, symbol)
                continue
            try:
                resolution.entries.append(_to_entry(symbol, asset_type, future.result()))
            except Exception as e:
                error = _as_source_error(symbol, asset_type, e)
                resolution.failures[(symbol, asset_type)] = error
                logger.warning("Price source failed: %s", error)
    finally:
        # Do not block on calls that outlived the timeout
        executor.shutdown(wait=False, cancel_futures=True)

    return resolution
