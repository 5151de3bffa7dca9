"""
Knowledge vector cache.
In-process, memory-bounded cache of knowledge embeddings with cosine search and health reporting.
"""

from .core.config import CacheConfig, resolve_cache_config
from .core.errors import (
    DimensionMismatchError,
    InvalidCacheConfigError,
    InvalidSearchParameterError,
    OrchestrationError,
    VectorCacheError,
)
from .core.orchestrator import VectorKnowledgeCache
from .vector.types import KnowledgeItem, SearchResult

__all__ = [
    'CacheConfig',
    'DimensionMismatchError',
    'InvalidCacheConfigError',
    'InvalidSearchParameterError',
    'KnowledgeItem',
    'OrchestrationError',
    'SearchResult',
    'VectorCacheError',
    'VectorKnowledgeCache',
    'resolve_cache_config',
]
