"""
Cache statistics and health reporting.
Pure functions of the cached records, the budgets and the running counters.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..vector.types import CachedVectorRecord
from .config import CacheConfig
from .memory import calculate_memory_usage_kb

# Health band thresholds
MEMORY_WARNING_UTILIZATION = 0.90
MEMORY_CRITICAL_UTILIZATION = 0.95
HIT_RATE_EXCELLENT = 0.95
HIT_RATE_GOOD = 0.80
EVICTION_WARNING_RATE = 0.10
EVICTION_CRITICAL_RATE = 0.20
COLD_WARNING_FRACTION = 0.30
COLD_MAJORITY_FRACTION = 0.50

MAX_DISTRIBUTION_BUCKETS = 10
TOP_N_ACCESS = 10


@dataclass
class CacheStats:
    """Point-in-time cache statistics; derived, never stored."""
    total_vectors: int
    memory_usage_kb: float
    memory_limit_kb: int
    memory_utilization: float
    cache_hit_rate: float
    searches_performed: int
    cache_hits: int
    evictions_performed: int
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_vectors": self.total_vectors,
            "memory_usage_kb": self.memory_usage_kb,
            "memory_limit_kb": self.memory_limit_kb,
            "memory_utilization": self.memory_utilization,
            "cache_hit_rate": self.cache_hit_rate,
            "searches_performed": self.searches_performed,
            "cache_hits": self.cache_hits,
            "evictions_performed": self.evictions_performed,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class EfficiencyMetrics:
    vector_density: float
    memory_density: float
    eviction_rate: float
    average_access_count: float
    average_time_since_access_ms: float
    total_accesses: int
    hot_vectors: int
    cold_vectors: int

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class HealthIndicators:
    memory_health: str            # good | warning | critical
    hit_rate_health: str          # excellent | good | poor
    eviction_health: str          # good | warning | critical
    access_pattern_health: str    # good | warning

    def values(self) -> List[str]:
        return [self.memory_health, self.hit_rate_health, self.eviction_health, self.access_pattern_health]

    def to_dict(self) -> Dict[str, str]:
        return dict(self.__dict__)


@dataclass
class HealthReport:
    stats: CacheStats
    efficiency: EfficiencyMetrics
    health_indicators: HealthIndicators
    recommendations: List[str]
    overall_health: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stats": self.stats.to_dict(),
            "efficiency": self.efficiency.to_dict(),
            "health_indicators": self.health_indicators.to_dict(),
            "recommendations": list(self.recommendations),
            "overall_health": self.overall_health,
        }


@dataclass
class AccessPatternReport:
    total_vectors: int = 0
    average_access_count: float = 0.0
    hot_vectors: List[Dict[str, Any]] = field(default_factory=list)
    cold_vectors: List[Dict[str, Any]] = field(default_factory=list)
    access_distribution: Dict[str, int] = field(default_factory=dict)


def calculate_cache_hit_rate(search_count: int, cache_hits: int) -> float:
    """Fraction of searches that were hits; 1.0 before any search."""
    if search_count <= 0:
        return 1.0
    return max(0.0, min(1.0, cache_hits / search_count))


def calculate_cache_stats(records: Sequence[CachedVectorRecord], config: CacheConfig,
                          search_count: int, cache_hits: int, evictions_performed: int,
                          initialized_at: Optional[datetime]) -> CacheStats:
    """Calculate cache statistics from the current records and counters."""
    memory_usage_kb = calculate_memory_usage_kb(records)
    memory_utilization = memory_usage_kb / config.max_memory_kb if config.max_memory_kb > 0 else 0.0

    return CacheStats(
        total_vectors=len(records),
        memory_usage_kb=memory_usage_kb,
        memory_limit_kb=config.max_memory_kb,
        memory_utilization=memory_utilization,
        cache_hit_rate=calculate_cache_hit_rate(search_count, cache_hits),
        searches_performed=search_count,
        cache_hits=cache_hits,
        evictions_performed=evictions_performed,
        last_updated=initialized_at or datetime.now(),
    )


def calculate_efficiency_metrics(records: Sequence[CachedVectorRecord], config: CacheConfig,
                                 search_count: int, evictions_performed: int,
                                 now: Optional[datetime] = None) -> EfficiencyMetrics:
    """Density ratios against budgets, eviction rate and hot/cold access counts."""
    now = now or datetime.now()
    total_vectors = len(records)
    memory_usage_kb = calculate_memory_usage_kb(records)

    access_counts = [record.access_count for record in records]
    total_accesses = sum(access_counts)
    average_access_count = total_accesses / total_vectors if total_vectors > 0 else 0.0

    if records:
        elapsed_ms = [(now - record.last_accessed_at).total_seconds() * 1000 for record in records]
        average_time_since_access_ms = sum(elapsed_ms) / len(elapsed_ms)
    else:
        average_time_since_access_ms = 0.0

    return EfficiencyMetrics(
        vector_density=total_vectors / config.max_vector_count if config.max_vector_count > 0 else 0.0,
        memory_density=memory_usage_kb / config.max_memory_kb if config.max_memory_kb > 0 else 0.0,
        eviction_rate=evictions_performed / search_count if search_count > 0 else 0.0,
        average_access_count=average_access_count,
        average_time_since_access_ms=average_time_since_access_ms,
        total_accesses=total_accesses,
        hot_vectors=sum(1 for count in access_counts if count > average_access_count),
        cold_vectors=sum(1 for count in access_counts if count == 0),
    )


def assess_health_indicators(stats: CacheStats, efficiency: EfficiencyMetrics) -> HealthIndicators:
    """Grade each health band independently."""
    if stats.memory_utilization < MEMORY_WARNING_UTILIZATION:
        memory_health = "good"
    elif stats.memory_utilization < MEMORY_CRITICAL_UTILIZATION:
        memory_health = "warning"
    else:
        memory_health = "critical"

    if stats.cache_hit_rate > HIT_RATE_EXCELLENT:
        hit_rate_health = "excellent"
    elif stats.cache_hit_rate > HIT_RATE_GOOD:
        hit_rate_health = "good"
    else:
        hit_rate_health = "poor"

    if efficiency.eviction_rate < EVICTION_WARNING_RATE:
        eviction_health = "good"
    elif efficiency.eviction_rate < EVICTION_CRITICAL_RATE:
        eviction_health = "warning"
    else:
        eviction_health = "critical"

    # An empty store has no cold records
    cold_fraction = efficiency.cold_vectors / stats.total_vectors if stats.total_vectors > 0 else 0.0
    access_pattern_health = "good" if cold_fraction < COLD_WARNING_FRACTION else "warning"

    return HealthIndicators(
        memory_health=memory_health,
        hit_rate_health=hit_rate_health,
        eviction_health=eviction_health,
        access_pattern_health=access_pattern_health,
    )


def calculate_overall_health(indicators: HealthIndicators) -> str:
    """Combine band grades into one verdict."""
    scores = indicators.values()

    if "critical" in scores:
        return "critical"
    if "warning" in scores:
        return "warning"
    if "excellent" in scores:
        return "excellent"

    return "good"


def build_recommendations(indicators: HealthIndicators, stats: CacheStats,
                          efficiency: EfficiencyMetrics) -> List[str]:
    recommendations = []

    if indicators.memory_health == "critical":
        recommendations.append("Consider increasing memory limit or reducing vector count")
    elif indicators.memory_health == "warning":
        recommendations.append("Memory usage is approaching the limit; review knowledge base size")

    if indicators.hit_rate_health == "poor":
        recommendations.append("Review cache initialization and search patterns")

    if indicators.eviction_health == "critical":
        recommendations.append("Increase eviction batch size or memory limits")
    elif indicators.eviction_health == "warning":
        recommendations.append("Eviction rate is elevated; consider raising the vector budget")

    if indicators.access_pattern_health == "warning":
        recommendations.append("Many cached vectors are never accessed; review category and source filters")

    if stats.total_vectors > 0 and efficiency.cold_vectors > stats.total_vectors * COLD_MAJORITY_FRACTION:
        recommendations.append("Consider more aggressive eviction of unused vectors")

    return recommendations


def generate_health_report(records: Sequence[CachedVectorRecord], config: CacheConfig,
                           search_count: int, cache_hits: int, evictions_performed: int,
                           now: Optional[datetime] = None) -> HealthReport:
    """Generate a cache health report with per-band grades and recommendations."""
    now = now or datetime.now()
    stats = calculate_cache_stats(records, config, search_count, cache_hits, evictions_performed, now)
    efficiency = calculate_efficiency_metrics(records, config, search_count, evictions_performed, now)
    indicators = assess_health_indicators(stats, efficiency)

    return HealthReport(
        stats=stats,
        efficiency=efficiency,
        health_indicators=indicators,
        recommendations=build_recommendations(indicators, stats, efficiency),
        overall_health=calculate_overall_health(indicators),
    )


def analyze_access_patterns(records: Sequence[CachedVectorRecord]) -> AccessPatternReport:
    """
    Access-count distribution plus the hottest and coldest records.

    Counts are grouped into at most ten integer ranges labelled "low-high"
    (inclusive). Hot records have an above-average access count, highest first;
    cold records were never accessed, oldest last access first.
    """
    if not records:
        return AccessPatternReport()

    access_counts = [record.access_count for record in records]
    average_access_count = sum(access_counts) / len(records)

    hot = sorted(
        (r for r in records if r.access_count > average_access_count),
        key=lambda r: r.access_count,
        reverse=True,
    )
    cold = sorted(
        (r for r in records if r.access_count == 0),
        key=lambda r: r.last_accessed_at,
    )

    max_access = max(access_counts)
    buckets = min(MAX_DISTRIBUTION_BUCKETS, max_access + 1)
    width = math.ceil((max_access + 1) / buckets)
    buckets = math.ceil((max_access + 1) / width)

    distribution: Dict[str, int] = {}
    labels = []
    for i in range(buckets):
        label = f"{i * width}-{min((i + 1) * width - 1, max_access)}"
        labels.append(label)
        distribution[label] = 0

    for count in access_counts:
        distribution[labels[min(count // width, buckets - 1)]] += 1

    return AccessPatternReport(
        total_vectors=len(records),
        average_access_count=average_access_count,
        hot_vectors=[{"id": r.item.id, "access_count": r.access_count} for r in hot[:TOP_N_ACCESS]],
        cold_vectors=[{"id": r.item.id, "last_accessed_at": r.last_accessed_at} for r in cold[:TOP_N_ACCESS]],
        access_distribution=distribution,
    )


def generate_search_metrics(search_time_ms: float, vectors_searched: int, results_found: int,
                            cache_hit_rate: float, memory_utilization: float,
                            search_threshold: float) -> Dict[str, Any]:
    return {
        "search_time_ms": search_time_ms,
        "vectors_searched": vectors_searched,
        "results_found": results_found,
        "cache_hit_rate": cache_hit_rate,
        "memory_utilization": memory_utilization,
        "search_threshold": search_threshold,
    }


def generate_initialization_metrics(initialization_time_ms: float, vectors_loaded: int, vectors_evicted: int,
                                    memory_usage_kb: float, memory_limit_kb: int,
                                    average_vector_size: int) -> Dict[str, Any]:
    return {
        "initialization_time_ms": initialization_time_ms,
        "vectors_loaded": vectors_loaded,
        "vectors_evicted": vectors_evicted,
        "memory_usage_kb": memory_usage_kb,
        "memory_utilization": memory_usage_kb / memory_limit_kb if memory_limit_kb > 0 else 0.0,
        "average_vector_size": average_vector_size,
    }
