"""
Vector record store and similarity engine.
"""

# Package initialization for vector module
from .index import IVectorRecordStore, InMemoryVectorRecordStore, make_cache_key
from .schemas import SearchOptions
from .similarity import batch_calculate_similarities, cosine_similarity, search_vectors
from .types import CachedVectorRecord, KnowledgeItem, SearchOutcome, SearchResult, SimilarityDebugEntry

__all__ = [
    'IVectorRecordStore',
    'InMemoryVectorRecordStore',
    'make_cache_key',
    'SearchOptions',
    'cosine_similarity',
    'batch_calculate_similarities',
    'search_vectors',
    'CachedVectorRecord',
    'KnowledgeItem',
    'SearchOutcome',
    'SearchResult',
    'SimilarityDebugEntry'
]
