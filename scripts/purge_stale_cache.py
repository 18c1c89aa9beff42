#!/usr/bin/env python
"""Purge price cache entries older than the configured stale limit."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from portfolio_cache.config import CacheOptions, get_settings
from portfolio_cache.database import SessionLocal
from portfolio_cache.domain import AssetType
from portfolio_cache.logging_config import configure_logging
from portfolio_cache.services import CachePriceService

logger = logging.getLogger(__name__)


def purge_stale_cache(max_age_hours: int | None = None, dry_run: bool = False) -> int:
    """Report stale symbols per asset type, then purge old entries."""
    service = CachePriceService.from_session_factory(
        SessionLocal, options=CacheOptions.from_settings(get_settings())
    )

    for asset_type in AssetType:
        stale = service.list_stale_symbols(asset_type)
        if stale.errors:
            for error in stale.errors:
                logger.error("Could not list stale %s entries: %s", asset_type.value, error)
            continue
        logger.info(
            "%d stale %s entries: %s",
            len(stale.symbols),
            asset_type.value,
            ", ".join(stale.symbols[:20]),
        )

    if dry_run:
        logger.info("Dry run, nothing deleted")
        return 0

    result = service.cleanup_stale_cache(max_age_hours)
    if result.errors:
        for error in result.errors:
            logger.error("Cleanup failed: %s", error)
        return 1

    logger.info("Deleted %d entries", result.deleted_entries)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--max-age-hours", type=int, default=None)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    configure_logging()
    sys.exit(purge_stale_cache(args.max_age_hours, args.dry_run))
