"""
Memory estimation and load-time admission for the vector cache.

A cache lives for one process/session, so there is no access history to age
records by when budgets are enforced. Eviction is therefore an admission
policy applied once per load: when the offered batch is over either budget,
records are dropped from the tail of the batch in eviction_batch_size groups
until both the memory and the count budget hold.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..vector.types import CachedVectorRecord
from .config import CacheConfig

# Budget accounting convention: 4 bytes per dimension + 1KB overhead, so a
# 1536-dim record counts as 7KB regardless of the in-memory dtype
BYTES_PER_DIMENSION = 4
RECORD_OVERHEAD_BYTES = 1024


@dataclass
class AdmissionPlan:
    """Which offered records to keep and which to drop."""
    admitted: List[CachedVectorRecord] = field(default_factory=list)
    evicted: List[CachedVectorRecord] = field(default_factory=list)
    memory_usage_kb: float = 0.0
    reason: Optional[str] = None  # None | memory | count | memory+count
    batches: int = 0

    @property
    def evicted_count(self) -> int:
        return len(self.evicted)


def estimate_record_bytes(dimension: int) -> int:
    """Estimated footprint of one record: vector payload plus metadata overhead."""
    return dimension * BYTES_PER_DIMENSION + RECORD_OVERHEAD_BYTES


def calculate_memory_usage_kb(records: Iterable[CachedVectorRecord]) -> float:
    """Estimated footprint of a set of records in KB."""
    total_bytes = sum(estimate_record_bytes(record.dimension) for record in records)
    return round(total_bytes / 1024, 2)


def get_memory_utilization(records: Iterable[CachedVectorRecord], config: CacheConfig) -> float:
    """Memory usage as a fraction of the configured budget."""
    if config.max_memory_kb <= 0:
        return 0.0
    return calculate_memory_usage_kb(records) / config.max_memory_kb


def plan_admission(candidates: List[CachedVectorRecord], config: CacheConfig) -> AdmissionPlan:
    """
    Decide which offered records fit both budgets.

    Args:
        candidates: Records in offered order
        config: Resolved cache budgets

    Returns:
        AdmissionPlan with the admitted prefix and the evicted tail
    """
    sizes = [estimate_record_bytes(record.dimension) for record in candidates]
    limit_bytes = config.max_memory_kb * 1024
    kept = len(candidates)
    total_bytes = sum(sizes)

    reasons = []
    if total_bytes > limit_bytes:
        reasons.append("memory")
    if kept > config.max_vector_count:
        reasons.append("count")

    required = _required_drops(sizes, total_bytes, limit_bytes, config.max_vector_count)
    dropped = 0
    batches = 0

    # Full groups, with the last one trimmed to what the budgets need
    while dropped < required:
        group = min(config.eviction_batch_size, required - dropped)
        total_bytes -= sum(sizes[kept - group:kept])
        kept -= group
        dropped += group
        batches += 1

    return AdmissionPlan(
        admitted=candidates[:kept],
        evicted=candidates[kept:],
        memory_usage_kb=round(total_bytes / 1024, 2),
        reason="+".join(reasons) if reasons else None,
        batches=batches,
    )


def _required_drops(sizes: List[int], total_bytes: int, limit_bytes: int, max_count: int) -> int:
    """Smallest number of tail records to drop so both budgets hold."""
    count_drops = max(0, len(sizes) - max_count)

    memory_drops = 0
    index = len(sizes)
    while total_bytes > limit_bytes and index > 0:
        index -= 1
        total_bytes -= sizes[index]
        memory_drops += 1

    return max(count_drops, memory_drops)
