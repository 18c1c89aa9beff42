"""Pure calculation modules for cache freshness and refresh planning."""

from portfolio_cache.calculations.efficiency import cache_efficiency, hit_rate
from portfolio_cache.calculations.freshness import (
    analyze_freshness,
    cache_age_minutes,
    compare_sync_to_cache,
    freshness_report,
    freshness_status,
    is_fresh,
    is_usable,
)
from portfolio_cache.calculations.strategy import (
    UpdatePlan,
    UpdateStrategy,
    plan_update,
    recommend_update,
    strategy_for,
)

__all__ = [
    # Freshness
    "cache_age_minutes",
    "is_fresh",
    "is_usable",
    "freshness_status",
    "analyze_freshness",
    "compare_sync_to_cache",
    "freshness_report",
    # Planning
    "UpdatePlan",
    "UpdateStrategy",
    "strategy_for",
    "plan_update",
    "recommend_update",
    # Efficiency
    "hit_rate",
    "cache_efficiency",
]
