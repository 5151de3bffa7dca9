"""
Vector cache configuration.
Budgets and search defaults come from the environment; callers may override per scope.
"""

import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import InvalidCacheConfigError

# Memory and count budgets (50MB / 10000 vectors by default)
MAX_MEMORY_KB = int(os.getenv("VECTOR_CACHE_MAX_MEMORY_KB", str(50 * 1024)))
MAX_VECTOR_COUNT = int(os.getenv("VECTOR_CACHE_MAX_VECTORS", "10000"))
EVICTION_BATCH_SIZE = int(os.getenv("VECTOR_CACHE_EVICTION_BATCH_SIZE", "100"))

# Search defaults
DEFAULT_THRESHOLD = float(os.getenv("VECTOR_CACHE_DEFAULT_THRESHOLD", "0.15"))
DEFAULT_LIMIT = int(os.getenv("VECTOR_CACHE_DEFAULT_LIMIT", "5"))


@dataclass(frozen=True)
class CacheConfig:
    """Fully resolved cache budgets."""
    max_memory_kb: int
    max_vector_count: int
    eviction_batch_size: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_default_cache_config() -> CacheConfig:
    """Get cache budgets from the environment, read at call time."""
    return CacheConfig(
        max_memory_kb=int(os.getenv("VECTOR_CACHE_MAX_MEMORY_KB", str(MAX_MEMORY_KB))),
        max_vector_count=int(os.getenv("VECTOR_CACHE_MAX_VECTORS", str(MAX_VECTOR_COUNT))),
        eviction_batch_size=int(os.getenv("VECTOR_CACHE_EVICTION_BATCH_SIZE", str(EVICTION_BATCH_SIZE))),
    )


def resolve_cache_config(overrides: Optional[Union[CacheConfig, Mapping[str, Any]]] = None) -> CacheConfig:
    """
    Merge caller overrides over the environment defaults.

    Missing, None or zero values fall back to the default for that field.

    Raises:
        InvalidCacheConfigError: if the merged budgets cannot be enforced
    """
    defaults = get_default_cache_config()
    if overrides is None:
        return _checked(defaults)

    if isinstance(overrides, CacheConfig):
        overrides = overrides.to_dict()

    unknown = set(overrides) - {f.name for f in fields(CacheConfig)}
    if unknown:
        raise InvalidCacheConfigError("Unknown cache config fields", {"fields": sorted(unknown)})

    merged = defaults.to_dict()
    for name, value in overrides.items():
        if value:
            merged[name] = int(value)

    return _checked(CacheConfig(**merged))


def validate_cache_config(config: CacheConfig) -> List[str]:
    """Validate cache budgets and return any issues."""
    issues = []

    if config.max_memory_kb <= 0:
        issues.append(f"max_memory_kb must be > 0: {config.max_memory_kb}")

    if config.max_vector_count <= 0:
        issues.append(f"max_vector_count must be > 0: {config.max_vector_count}")

    if config.eviction_batch_size <= 0:
        issues.append(f"eviction_batch_size must be > 0: {config.eviction_batch_size}")

    return issues


def _checked(config: CacheConfig) -> CacheConfig:
    issues = validate_cache_config(config)
    if issues:
        raise InvalidCacheConfigError("Cache configuration invalid", {"issues": issues})
    return config
