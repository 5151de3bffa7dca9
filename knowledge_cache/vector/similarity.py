"""
Similarity engine - cosine similarity and linear-scan search over a record store.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
from pydantic import ValidationError

from ..core.config import DEFAULT_LIMIT, DEFAULT_THRESHOLD
from ..core.errors import DimensionMismatchError, InvalidSearchParameterError
from .index import IVectorRecordStore
from .schemas import MAX_LIMIT, SearchOptions
from .types import SearchOutcome, SearchResult, SimilarityDebugEntry

VectorLike = Union[Sequence[float], np.ndarray]


def cosine_similarity(vector_a: VectorLike, vector_b: VectorLike,
                      validate_dimensions: bool = True, handle_zero_vectors: bool = True) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        vector_a: First vector
        vector_b: Second vector
        validate_dimensions: Raise on differing lengths instead of truncating to the shorter one
        handle_zero_vectors: Return 0.0 as soon as either norm is zero

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: if lengths differ and validate_dimensions is set
    """
    a = np.asarray(vector_a, dtype=np.float64).ravel()
    b = np.asarray(vector_b, dtype=np.float64).ravel()

    if a.shape[0] != b.shape[0]:
        if validate_dimensions:
            raise DimensionMismatchError(a.shape[0], b.shape[0])
        n = min(a.shape[0], b.shape[0])
        a, b = a[:n], b[:n]

    dot_product = float(np.dot(a, b))
    norm_a = float(np.dot(a, a))
    norm_b = float(np.dot(b, b))

    if handle_zero_vectors and (norm_a == 0.0 or norm_b == 0.0):
        return 0.0

    denominator = np.sqrt(norm_a) * np.sqrt(norm_b)
    if denominator == 0.0:
        return 0.0

    # Rounding can push identical vectors a hair past 1
    return float(np.clip(dot_product / denominator, -1.0, 1.0))


def batch_calculate_similarities(query: VectorLike, candidates: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Score each {id, vector} candidate against the query."""
    return [
        {"id": candidate["id"], "similarity": cosine_similarity(query, candidate["vector"])}
        for candidate in candidates
    ]


def validate_search_options(options: Optional[Union[SearchOptions, Mapping[str, Any]]] = None) -> SearchOptions:
    """
    Resolve search options, applying defaults for missing fields.

    Raises:
        InvalidSearchParameterError: threshold outside [0, 1], limit outside [1, 1000] or unknown fields
    """
    if options is None:
        return SearchOptions()
    if isinstance(options, SearchOptions):
        return options

    supplied = {k: v for k, v in options.items() if v is not None}
    try:
        return SearchOptions(**supplied)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidSearchParameterError("Invalid search parameters", {"errors": errors}) from e


def validate_query_embedding(query_embedding: Optional[VectorLike]) -> np.ndarray:
    """Reject missing, empty, non-numeric, multi-dimensional or non-finite query embeddings."""
    if query_embedding is None:
        raise InvalidSearchParameterError("Query embedding is required")

    try:
        query = np.asarray(query_embedding, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidSearchParameterError("Query embedding must be a sequence of numbers",
                                          {"error": str(e)}) from e

    if query.ndim != 1:
        raise InvalidSearchParameterError("Query embedding must be one-dimensional", {"ndim": query.ndim})
    if query.shape[0] == 0:
        raise InvalidSearchParameterError("Query embedding cannot be empty")
    if not np.isfinite(query).all():
        raise InvalidSearchParameterError("Query embedding contains NaN or infinite values")

    return query


def search_vectors(query_embedding: VectorLike, store: IVectorRecordStore,
                   options: Optional[Union[SearchOptions, Mapping[str, Any]]] = None,
                   now: Optional[datetime] = None) -> SearchOutcome:
    """
    Linear-scan cosine search over every record in the store.

    Every record is marked as accessed, including ones that are filtered out or
    fall below the threshold. A record whose dimension differs from the query is
    excluded from results and reported in debug info with its error.

    Raises:
        InvalidSearchParameterError: before any record is touched
    """
    resolved = validate_search_options(options)
    query = validate_query_embedding(query_embedding)
    now = now or datetime.now()

    results: List[SearchResult] = []
    debug_info: List[SimilarityDebugEntry] = []

    for record in store.records():
        record.mark_accessed(now)

        if resolved.category_filter and record.item.category != resolved.category_filter:
            continue
        if resolved.source_type_filter and record.item.source != resolved.source_type_filter:
            continue

        try:
            similarity = cosine_similarity(query, record.vector)
        except DimensionMismatchError as e:
            debug_info.append(SimilarityDebugEntry(
                id=record.item.id,
                similarity=0.0,
                passed_threshold=False,
                error=f"{e.message} (query={e.dim_a}, cached={e.dim_b})"
            ))
            continue

        passed = similarity >= resolved.threshold
        debug_info.append(SimilarityDebugEntry(id=record.item.id, similarity=similarity, passed_threshold=passed))

        if passed:
            results.append(SearchResult(item=record.item, similarity=similarity))

    # Stable sorts keep insertion order among equal scores
    results.sort(key=lambda r: r.similarity, reverse=True)
    debug_info.sort(key=lambda d: d.similarity, reverse=True)

    return SearchOutcome(results=results[:resolved.limit], debug_info=debug_info)


__all__ = [
    'DEFAULT_LIMIT',
    'DEFAULT_THRESHOLD',
    'MAX_LIMIT',
    'batch_calculate_similarities',
    'cosine_similarity',
    'search_vectors',
    'validate_query_embedding',
    'validate_search_options',
]
