"""Hit-rate arithmetic and cache efficiency grading."""

from dataclasses import dataclass


def hit_rate(hits: int, total: int) -> float:
    """Percentage of hits, 0 when there is nothing to measure."""
    if total <= 0:
        return 0.0
    return hits / total * 100


@dataclass
class CacheEfficiency:
    hit_rate: float
    miss_rate: float
    efficiency: str  # excellent, good, fair, poor
    recommendations: list[str]


def cache_efficiency(total_requests: int, cache_hits: int, cache_misses: int) -> CacheEfficiency:
    """Grade cache performance from request counts."""
    hits = hit_rate(cache_hits, total_requests)
    misses = hit_rate(cache_misses, total_requests)
    recommendations: list[str] = []

    if hits >= 90:
        efficiency = "excellent"
        recommendations.append("Cache performance is excellent, maintain current TTL settings")
    elif hits >= 75:
        efficiency = "good"
        recommendations.append("Cache performance is good, consider minor TTL adjustments")
    elif hits >= 50:
        efficiency = "fair"
        recommendations.append(
            "Cache performance is fair, review TTL settings and update frequency"
        )
    else:
        efficiency = "poor"
        recommendations.append(
            "Cache performance is poor, consider increasing TTL or update frequency"
        )
        recommendations.append("Review cache invalidation strategy")

    if misses > 25:
        recommendations.append("High cache miss rate detected, consider preloading popular symbols")

    return CacheEfficiency(
        hit_rate=hits,
        miss_rate=misses,
        efficiency=efficiency,
        recommendations=recommendations,
    )
