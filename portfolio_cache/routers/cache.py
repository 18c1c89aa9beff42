"""JSON endpoints over the cache price service."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import sessionmaker

from portfolio_cache.config import CacheOptions, get_settings
from portfolio_cache.database import get_session_factory
from portfolio_cache.domain import AssetType, PortfolioSymbols
from portfolio_cache.services import CachePriceService, PriceSource
from portfolio_cache.utils.query_params import (
    parse_bool_param,
    parse_int_param,
    parse_symbols_param,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_price_source() -> PriceSource | None:
    """Dependency overridden by the hosting application with a real quote provider."""
    return None


def get_cache_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    price_source: PriceSource | None = Depends(get_price_source),
) -> CachePriceService:
    return CachePriceService.from_session_factory(
        session_factory,
        price_source=price_source,
        options=CacheOptions.from_settings(get_settings()),
    )


def _symbols(stocks: str, crypto: str) -> PortfolioSymbols:
    return PortfolioSymbols(
        stocks=parse_symbols_param(stocks), crypto=parse_symbols_param(crypto)
    )


@router.get("/portfolio")
def get_portfolio(
    user_id: str = Query(..., description="Requesting user"),
    stocks: str = Query(default="", description="Comma-separated stock symbols"),
    crypto: str = Query(default="", description="Comma-separated crypto symbols"),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    """Fresh cached prices plus the symbols the caller should refetch."""
    return jsonable_encoder(service.get_portfolio_data(user_id, _symbols(stocks, crypto)))


@router.post("/update")
def update_portfolio(
    user_id: str = Query(...),
    stocks: str = Query(default=""),
    crypto: str = Query(default=""),
    only_stale: str | None = Query(default=None),
    service: CachePriceService = Depends(get_cache_service),
    price_source: PriceSource | None = Depends(get_price_source),
) -> dict[str, Any]:
    """Refresh prices from the configured price source."""
    if price_source is None:
        raise HTTPException(status_code=503, detail="No price source configured")

    result = service.update_portfolio_cache(
        user_id,
        _symbols(stocks, crypto),
        only_stale=parse_bool_param(only_stale),
    )
    logger.info("Update for %s: success=%s", user_id, result.success)
    return jsonable_encoder(result)


@router.get("/should-update")
def should_update(
    user_id: str = Query(...),
    stocks: str = Query(default=""),
    crypto: str = Query(default=""),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    return jsonable_encoder(service.should_update_cache(user_id, _symbols(stocks, crypto)))


@router.get("/stats")
def cache_stats(
    user_id: str = Query(...),
    stocks: str = Query(default=""),
    crypto: str = Query(default=""),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    return jsonable_encoder(service.get_cache_stats(user_id, _symbols(stocks, crypto)))


@router.get("/integrity")
def cache_integrity(
    stocks: str = Query(default=""),
    crypto: str = Query(default=""),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    return jsonable_encoder(service.validate_cache_integrity(_symbols(stocks, crypto)))


@router.get("/statistics")
def global_statistics(
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    """Cache-wide counts across all users."""
    statistics = service.get_global_cache_statistics()
    if statistics is None:
        raise HTTPException(status_code=503, detail="Cache statistics unavailable")
    return jsonable_encoder(statistics)


@router.get("/stale")
def stale_symbols(
    asset_type: AssetType = Query(default=AssetType.STOCK),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    """Symbols past the TTL, oldest first."""
    result = service.list_stale_symbols(asset_type)
    if result.errors:
        raise HTTPException(status_code=503, detail="; ".join(result.errors))
    return jsonable_encoder(result)


@router.post("/cleanup")
def cleanup(
    max_age_hours: str | None = Query(default=None),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    """Purge entries older than max_age_hours (defaults to the stale limit)."""
    max_age = parse_int_param(max_age_hours, minimum=1)
    return jsonable_encoder(service.cleanup_stale_cache(max_age))


@router.get("/requests")
def recent_requests(
    user_id: str = Query(...),
    limit: str | None = Query(default=None),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    """A user's latest update attempts."""
    history = service.recent_update_requests(user_id, parse_int_param(limit, minimum=1) or 20)
    if history.errors:
        raise HTTPException(status_code=503, detail="; ".join(history.errors))
    return jsonable_encoder(history)


@router.get("/performance")
def performance_metrics(
    user_id: str = Query(...),
    hours: str | None = Query(default=None),
    service: CachePriceService = Depends(get_cache_service),
) -> dict[str, Any]:
    """Hit rate and efficiency grade over a user's recent updates."""
    window = parse_int_param(hours, minimum=1) or 24
    return jsonable_encoder(service.get_performance_metrics(user_id, window))
