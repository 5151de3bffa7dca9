"""
Vector knowledge cache - the single orchestrator for one (organization, chatbot configuration) scope.

Coordinates admission, search, clear and monitoring over one exclusively owned
record store. Searches are synchronous linear scans; access statistics and the
search/hit counters are best-effort diagnostics.
"""

import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..util.logging import logger as default_logger
from ..vector.index import InMemoryVectorRecordStore
from ..vector.schemas import SearchOptions
from ..vector.similarity import search_vectors, validate_query_embedding, validate_search_options
from ..vector.types import (
    CachedVectorRecord,
    InitializationResult,
    KnowledgeItem,
    SearchOutcome,
    SearchResult,
)
from .config import CacheConfig, resolve_cache_config
from .errors import InvalidSearchParameterError, OrchestrationError
from .memory import calculate_memory_usage_kb, plan_admission
from .statistics import (
    AccessPatternReport,
    CacheStats,
    EfficiencyMetrics,
    HealthReport,
    analyze_access_patterns,
    calculate_cache_stats,
    calculate_efficiency_metrics,
    generate_health_report,
    generate_initialization_metrics,
    generate_search_metrics,
)

VectorPair = Union[Tuple[Any, Sequence[float]], Mapping[str, Any]]

TOP_CANDIDATES_LOGGED = 5


class VectorKnowledgeCache:
    """
    In-memory knowledge vector cache for one scope.

    Lifecycle: created empty, populated by initialize(), read by search(),
    emptied by clear(). Calling initialize() again replaces the whole store.
    """

    def __init__(self, organization_id: str, chatbot_config_id: str,
                 config: Optional[Union[CacheConfig, Mapping[str, Any]]] = None, logger=None):
        """
        Args:
            organization_id: Owning organization
            chatbot_config_id: Owning chatbot configuration
            config: Partial or full budgets; missing fields use environment defaults
            logger: Sink with log_step/log_message/log_metrics/log_error/log_vector_operation/warning (module logger by default)
        """
        self.organization_id = organization_id
        self.chatbot_config_id = chatbot_config_id
        self.config = resolve_cache_config(config)
        self.logger = logger or default_logger

        self._store = InMemoryVectorRecordStore(organization_id, chatbot_config_id)
        self._initialized = False
        self._initialized_at: Optional[datetime] = None
        self._search_count = 0
        self._cache_hits = 0
        self._evictions_performed = 0

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def store(self) -> InMemoryVectorRecordStore:
        return self._store

    def is_ready(self) -> bool:
        """Check if cache is initialized and holds at least one vector."""
        return self._initialized and len(self._store) > 0

    def __len__(self) -> int:
        return len(self._store)

    def _scope_context(self) -> Dict[str, Any]:
        return {
            "organization_id": self.organization_id,
            "chatbot_config_id": self.chatbot_config_id,
        }

    def _reset(self) -> None:
        self._store.clear()
        self._initialized = False
        self._initialized_at = None
        self._search_count = 0
        self._cache_hits = 0
        self._evictions_performed = 0

    # Initialization

    def initialize(self, vectors: Iterable[VectorPair]) -> InitializationResult:
        """
        Load a batch of (knowledge item, vector) pairs, admitting what fits the budgets.

        Pairs may be tuples or mappings with "item" and "vector" keys. Items may be
        KnowledgeItem instances or mappings of KnowledgeItem fields. A repeated item
        ID replaces the earlier vector in place.

        Raises:
            OrchestrationError: with scope and attempted vector count if loading fails
        """
        start_time = time.perf_counter()
        vectors = list(vectors)

        try:
            self.logger.log_step("Vector Cache Initialization")
            self.logger.log_message(f"Loading {len(vectors)} knowledge vectors into memory")
            self.logger.log_message(
                f"Memory limit: {self.config.max_memory_kb} KB, Vector limit: {self.config.max_vector_count}"
            )

            self._reset()
            now = datetime.now()
            candidates = self._build_candidates(vectors, now)
            if len(candidates) < len(vectors):
                self.logger.log_message(f"Merged {len(vectors) - len(candidates)} duplicate knowledge item IDs")

            plan = plan_admission(candidates, self.config)
            if plan.evicted:
                self.logger.warning(
                    f"Evicted {plan.evicted_count} vectors in {plan.batches} batches "
                    f"(reason: {plan.reason} limit exceeded)"
                )

            for record in plan.admitted:
                self._store.put(record)

            self._evictions_performed = plan.evicted_count
            self._initialized = True
            self._initialized_at = now

            time_ms = (time.perf_counter() - start_time) * 1000
            metrics = generate_initialization_metrics(
                time_ms,
                len(self._store),
                plan.evicted_count,
                plan.memory_usage_kb,
                self.config.max_memory_kb,
                candidates[0].dimension if candidates else 0,
            )

            self.logger.log_message(f"Vectors loaded: {len(self._store)}")
            self.logger.log_message(f"Vectors evicted: {plan.evicted_count}")
            self.logger.log_message(
                f"Memory usage: {plan.memory_usage_kb} KB ({metrics['memory_utilization'] * 100:.1f}% of limit)"
            )
            self.logger.log_metrics("vector-cache-init", time_ms, metrics)

            return InitializationResult(
                success=True,
                vectors_loaded=len(self._store),
                vectors_evicted=plan.evicted_count,
                memory_usage_kb=plan.memory_usage_kb,
                time_ms=time_ms,
            )

        except Exception as e:
            self._reset()
            time_ms = (time.perf_counter() - start_time) * 1000
            context = self._scope_context()
            context.update({"vector_count": len(vectors), "time_ms": round(time_ms, 2)})
            self.logger.log_error("vector_cache.initialize", e, context)
            raise OrchestrationError("initialize", "Vector cache initialization failed", context, cause=e) from e

    def _build_candidates(self, vectors: List[VectorPair], now: datetime) -> List[CachedVectorRecord]:
        candidates: Dict[str, CachedVectorRecord] = {}

        for index, entry in enumerate(vectors):
            if isinstance(entry, Mapping):
                item, vector = entry.get("item"), entry.get("vector")
            else:
                item, vector = entry

            if isinstance(item, Mapping):
                item = KnowledgeItem(**item)
            if not isinstance(item, KnowledgeItem):
                raise ValueError(f"Entry {index} has no knowledge item")
            if vector is None:
                raise ValueError(f"Entry {index} ({item.id}) has no vector")

            record = CachedVectorRecord.create(item, vector, now)
            if record.vector.ndim != 1:
                raise ValueError(f"Entry {index} ({item.id}) vector must be one-dimensional, got {record.vector.ndim}")

            candidates[item.id] = record

        return list(candidates.values())

    # Search

    def search(self, query_embedding: Sequence[float],
               options: Optional[Union[SearchOptions, Mapping[str, Any]]] = None) -> List[SearchResult]:
        """
        Rank cached knowledge items by cosine similarity to the query.

        Raises:
            InvalidSearchParameterError: bad threshold, limit or empty query (scope ids in context)
            OrchestrationError: cache not initialized or unexpected failure
        """
        return self.search_with_debug(query_embedding, options).results

    def search_with_debug(self, query_embedding: Sequence[float],
                          options: Optional[Union[SearchOptions, Mapping[str, Any]]] = None) -> SearchOutcome:
        """Same as search(), also returning every scored candidate."""
        start_time = time.perf_counter()

        try:
            resolved = validate_search_options(options)
            query = validate_query_embedding(query_embedding)
        except InvalidSearchParameterError as e:
            e.context.update(self._scope_context())
            self.logger.log_error("vector_cache.search", e, self._scope_context())
            raise

        if not self._initialized:
            raise OrchestrationError(
                "search", "Vector cache not initialized - call initialize() first", self._scope_context()
            )

        try:
            self._search_count += 1

            self.logger.log_message(f"Searching {len(self._store)} cached vectors")
            self.logger.log_message(
                f"Search threshold: {resolved.threshold}, limit: {resolved.limit}, "
                f"category: {resolved.category_filter}, source: {resolved.source_type_filter}"
            )
            self.logger.log_message(f"Query embedding dimensions: {query.shape[0]}")

            outcome = search_vectors(query, self._store, resolved)
            if outcome.results:
                self._cache_hits += 1

            self._log_search_results(outcome, resolved, start_time)
            return outcome

        except Exception as e:
            time_ms = (time.perf_counter() - start_time) * 1000
            context = self._scope_context()
            context.update({"search_time_ms": round(time_ms, 2), "cache_size": len(self._store)})
            self.logger.log_error("vector_cache.search", e, context)
            raise OrchestrationError("search", "Cached vector search failed", context, cause=e) from e

    def _log_search_results(self, outcome: SearchOutcome, options: SearchOptions, start_time: float) -> None:
        self.logger.log_message(f"Total similarities calculated: {len(outcome.debug_info)}")
        for position, entry in enumerate(outcome.debug_info[:TOP_CANDIDATES_LOGGED], start=1):
            if entry.error:
                verdict = f"skipped: {entry.error}"
            else:
                verdict = "passed" if entry.passed_threshold else "below threshold"
            self.logger.log_message(f"  {position}. {entry.id}: {entry.similarity * 100:.1f}% {verdict}")

        time_ms = (time.perf_counter() - start_time) * 1000
        stats = self._calculate_stats()

        self.logger.log_message(f"Found {len(outcome.results)} relevant items in {time_ms:.1f}ms")
        if outcome.results:
            self.logger.log_message(f"Best match similarity: {outcome.results[0].similarity:.3f}")
            self.logger.log_message(f"Worst match similarity: {outcome.results[-1].similarity:.3f}")

        self.logger.log_metrics("cached-vector-search", time_ms, generate_search_metrics(
            time_ms,
            len(self._store),
            len(outcome.results),
            stats.cache_hit_rate,
            stats.memory_utilization,
            options.threshold,
        ))

    # Clear

    def clear(self) -> bool:
        """Empty the store and reset counters for this scope."""
        previous_size = len(self._store)
        try:
            self._reset()
            self.logger.log_vector_operation(
                "clear", f"{self.organization_id}/{self.chatbot_config_id}", {"previous_size": previous_size}
            )
            return True
        except Exception as e:
            context = self._scope_context()
            context["previous_size"] = previous_size
            self.logger.log_error("vector_cache.clear", e, context)
            raise OrchestrationError("clear", "Vector cache clear failed", context, cause=e) from e

    # Monitoring

    def _calculate_stats(self) -> CacheStats:
        return calculate_cache_stats(
            self._store.records(),
            self.config,
            self._search_count,
            self._cache_hits,
            self._evictions_performed,
            self._initialized_at,
        )

    def get_stats(self) -> CacheStats:
        """Snapshot of cache statistics; safe before initialization."""
        try:
            stats = self._calculate_stats()
            self.logger.log_message(
                f"Cache state: initialized={self._initialized}, vectors={stats.total_vectors}, "
                f"memory={stats.memory_usage_kb} KB ({stats.memory_utilization * 100:.1f}%), "
                f"hit rate={stats.cache_hit_rate * 100:.1f}%"
            )
            return stats
        except Exception as e:
            context = {"cache_size": len(self._store), "is_initialized": self._initialized}
            self.logger.log_error("vector_cache.get_stats", e, context)
            raise OrchestrationError("get_stats", "Vector cache state monitoring failed", context, cause=e) from e

    def get_efficiency_metrics(self) -> EfficiencyMetrics:
        return calculate_efficiency_metrics(
            self._store.records(), self.config, self._search_count, self._evictions_performed
        )

    def get_health_report(self) -> HealthReport:
        """Per-band health grades, overall verdict and recommendations."""
        try:
            report = generate_health_report(
                self._store.records(),
                self.config,
                self._search_count,
                self._cache_hits,
                self._evictions_performed,
            )
            self.logger.log_message(f"Cache health: {report.overall_health}")
            for recommendation in report.recommendations:
                self.logger.log_message(f"  - {recommendation}")
            return report
        except Exception as e:
            context = self._scope_context()
            context["cache_size"] = len(self._store)
            self.logger.log_error("vector_cache.get_health_report", e, context)
            raise OrchestrationError("get_health_report", "Vector cache health report failed", context,
                                     cause=e) from e

    def analyze_access_patterns(self) -> AccessPatternReport:
        return analyze_access_patterns(self._store.records())

    def memory_usage_kb(self) -> float:
        return calculate_memory_usage_kb(self._store.records())
