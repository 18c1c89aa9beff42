"""Turn freshness classifications into refresh plans and recommendations."""

from dataclasses import dataclass, field
from enum import Enum

from portfolio_cache.calculations.freshness import FreshnessResult, SyncComparison
from portfolio_cache.config import STRATEGY_THRESHOLDS, UPDATE_RECOMMENDATION_THRESHOLD


class UpdateStrategy(str, Enum):
    FULL_UPDATE = "full_update"
    PARTIAL_UPDATE = "partial_update"
    USE_CACHE = "use_cache"
    MIXED = "mixed"


@dataclass
class UpdatePlan:
    """Which symbols to refetch and which to serve from cache."""

    update_required: list[str] = field(default_factory=list)
    use_cache: list[str] = field(default_factory=list)
    strategy: UpdateStrategy = UpdateStrategy.FULL_UPDATE
    reasoning: str = ""


def strategy_for(fresh_percentage: float) -> UpdateStrategy:
    """
    Band a fresh percentage into a strategy label.

    0 -> full_update, 100 -> use_cache, [50, 100) -> partial_update,
    (0, 50) -> mixed.
    """
    none_fresh, partial_floor, all_fresh = STRATEGY_THRESHOLDS
    if fresh_percentage <= none_fresh:
        return UpdateStrategy.FULL_UPDATE
    if fresh_percentage >= all_fresh:
        return UpdateStrategy.USE_CACHE
    if fresh_percentage >= partial_floor:
        return UpdateStrategy.PARTIAL_UPDATE
    return UpdateStrategy.MIXED


def _reasoning(strategy: UpdateStrategy, fresh_percentage: float) -> str:
    if strategy == UpdateStrategy.FULL_UPDATE:
        return "No fresh cache data available, full update required"
    if strategy == UpdateStrategy.USE_CACHE:
        return "All cache data is fresh, no update needed"
    if strategy == UpdateStrategy.PARTIAL_UPDATE:
        return f"{fresh_percentage:.1f}% of cache is fresh, partial update recommended"
    return f"{fresh_percentage:.1f}% of cache is fresh, mixed strategy recommended"


def plan_update(
    freshness: FreshnessResult, sync_comparison: SyncComparison | None = None
) -> UpdatePlan:
    """
    Build an update plan from a freshness classification.

    Stale and missing symbols must be refetched; fresh ones are served
    from cache. The optional sync comparison only adds to the reasoning.
    """
    strategy = strategy_for(freshness.fresh_percentage)
    reasoning = _reasoning(strategy, freshness.fresh_percentage)

    if sync_comparison is not None and sync_comparison.user_newer:
        reasoning += f". User has newer data for {len(sync_comparison.user_newer)} symbols"

    return UpdatePlan(
        update_required=[*freshness.stale, *freshness.missing],
        use_cache=list(freshness.fresh),
        strategy=strategy,
        reasoning=reasoning,
    )


@dataclass
class UpdateRecommendation:
    should_update: bool
    reason: str
    overall_freshness: float


def recommend_update(
    stock_fresh_percentage: float,
    crypto_fresh_percentage: float,
    threshold: float = UPDATE_RECOMMENDATION_THRESHOLD,
) -> UpdateRecommendation:
    """Recommend a refresh when the stock/crypto average falls below threshold."""
    overall = (stock_fresh_percentage + crypto_fresh_percentage) / 2
    should_update = overall < threshold

    if not should_update:
        reason = "Cache data is sufficiently fresh"
    elif overall < 25:
        reason = "Most cache data is stale or missing"
    elif overall < 50:
        reason = "Significant portion of cache data is stale"
    else:
        reason = "Some cache data needs refreshing"

    return UpdateRecommendation(
        should_update=should_update, reason=reason, overall_freshness=overall
    )
