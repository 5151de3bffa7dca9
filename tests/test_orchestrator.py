"""
Vector knowledge cache orchestrator tests.
Tests initialize/search/clear/monitor workflows for one organization and chatbot configuration.
"""

import pytest
import numpy as np
from unittest.mock import MagicMock

from knowledge_cache import (
    InvalidCacheConfigError,
    InvalidSearchParameterError,
    KnowledgeItem,
    OrchestrationError,
    VectorKnowledgeCache,
)
from knowledge_cache.core.errors import VectorCacheError


def make_item(item_id, category="faq", source="website"):
    return KnowledgeItem(id=item_id, content=f"Answer for {item_id}", category=category, source=source)


@pytest.fixture
def mock_logger():
    """Create a mock logger exposing the session sinks."""
    return MagicMock()


@pytest.fixture
def cache(mock_logger):
    """Create an empty cache with mocked logging."""
    return VectorKnowledgeCache("org-123", "config-456", logger=mock_logger)


@pytest.fixture
def loaded_cache(cache):
    """Cache loaded with three orthogonal-ish knowledge vectors."""
    cache.initialize([
        (make_item("item-1"), [1.0, 0.0, 0.0, 0.0]),
        (make_item("item-2"), [0.0, 1.0, 0.5, 0.0]),
        (make_item("item-3", category="pricing"), [0.0, 0.0, 0.0, 1.0]),
    ])
    return cache


class TestInitialize:
    """Test bulk loading and admission."""

    def test_initialize_loads_vectors(self, cache, mock_logger):
        result = cache.initialize([
            (make_item("item-1"), [1.0, 0.0]),
            (make_item("item-2"), [0.0, 1.0]),
        ])

        assert result.success is True
        assert result.vectors_loaded == 2
        assert result.vectors_evicted == 0
        assert result.time_ms >= 0
        assert cache.is_initialized
        assert cache.is_ready()
        assert len(cache) == 2

        mock_logger.log_step.assert_called_once_with("Vector Cache Initialization")
        mock_logger.log_metrics.assert_called_once()
        assert mock_logger.log_metrics.call_args[0][0] == "vector-cache-init"

    def test_initialize_empty_batch(self, cache):
        result = cache.initialize([])

        assert result.success is True
        assert result.vectors_loaded == 0
        assert cache.is_initialized
        assert not cache.is_ready()
        assert cache.search([0.1, 0.2, 0.3]) == []

    def test_count_budget_eviction(self, mock_logger):
        cache = VectorKnowledgeCache("org-123", "config-456", config={"max_vector_count": 500},
                                     logger=mock_logger)
        vectors = [(make_item(f"item-{i}"), [float(i % 7), 1.0, 0.5]) for i in range(2000)]

        result = cache.initialize(vectors)

        assert result.vectors_loaded == 500
        assert result.vectors_evicted == 1500
        assert len(cache) == 500
        assert cache.get_stats().evictions_performed == 1500

    def test_memory_budget_eviction(self, mock_logger):
        cache = VectorKnowledgeCache("org-123", "config-456",
                                     config={"max_memory_kb": 70, "eviction_batch_size": 5},
                                     logger=mock_logger)
        vectors = [(make_item(f"item-{i}"), [0.01] * 1536) for i in range(25)]

        result = cache.initialize(vectors)

        assert result.vectors_loaded == 10
        assert result.vectors_evicted == 15
        assert result.memory_usage_kb <= 70
        assert cache.memory_usage_kb() == result.memory_usage_kb
        mock_logger.warning.assert_called_once()
        assert "Evicted 15 vectors in 3 batches" in mock_logger.warning.call_args[0][0]

    def test_no_eviction_warning_under_budget(self, cache, mock_logger):
        cache.initialize([(make_item("item-1"), [1.0, 0.0])])
        mock_logger.warning.assert_not_called()

    def test_two_dimensional_vector_rejected(self, cache):
        with pytest.raises(OrchestrationError) as exc_info:
            cache.initialize([(make_item("item-1"), [[1.0, 0.0], [0.0, 1.0]])])

        assert isinstance(exc_info.value.cause, ValueError)
        assert "one-dimensional" in exc_info.value.context["error"]
        assert len(cache) == 0

    def test_loaded_plus_evicted_equals_offered(self, mock_logger):
        cache = VectorKnowledgeCache("org-123", "config-456",
                                     config={"max_vector_count": 40, "eviction_batch_size": 7},
                                     logger=mock_logger)

        for offered in (0, 39, 40, 41, 97):
            result = cache.initialize([(make_item(f"item-{i}"), [1.0, 2.0]) for i in range(offered)])
            assert result.vectors_loaded + result.vectors_evicted == offered
            assert result.vectors_loaded <= 40

    def test_mapping_inputs(self, cache):
        result = cache.initialize([
            {"item": {"id": "item-1", "content": "Returns within 30 days", "category": "faq",
                      "source": "document"},
             "vector": [1.0, 0.0]},
        ])

        assert result.vectors_loaded == 1
        assert cache.store.get("item-1").item.source == "document"

    def test_duplicate_ids_last_vector_wins(self, cache):
        result = cache.initialize([
            (make_item("item-1"), [1.0, 0.0]),
            (make_item("item-1"), [0.0, 1.0]),
        ])

        assert result.vectors_loaded == 1
        assert cache.store.get("item-1").vector.tolist() == [0.0, 1.0]

    def test_reinitialize_replaces_store(self, loaded_cache):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        loaded_cache.initialize([(make_item("fresh"), [1.0, 1.0])])

        assert loaded_cache.store.ids() == ["fresh"]
        assert loaded_cache.get_stats().searches_performed == 0

    def test_bad_entry_raises_orchestration_error(self, cache, mock_logger):
        with pytest.raises(OrchestrationError) as exc_info:
            cache.initialize([
                (make_item("item-1"), [1.0, 0.0]),
                (make_item("item-2"), None),
            ])

        error = exc_info.value
        assert error.operation == "initialize"
        assert error.context["organization_id"] == "org-123"
        assert error.context["chatbot_config_id"] == "config-456"
        assert error.context["vector_count"] == 2
        assert isinstance(error.cause, ValueError)
        assert not cache.is_initialized
        assert len(cache) == 0
        mock_logger.log_error.assert_called_once()

    def test_invalid_config_rejected(self, mock_logger):
        with pytest.raises(InvalidCacheConfigError):
            VectorKnowledgeCache("org-123", "config-456", config={"max_vector_count": -5}, logger=mock_logger)


class TestSearch:
    """Test cosine search through the orchestrator."""

    def test_exact_match_scenario(self, loaded_cache):
        results = loaded_cache.search([0.0, 1.0, 0.5, 0.0], {"threshold": 0.99, "limit": 5})

        assert len(results) == 1
        assert results[0].item.id == "item-2"
        assert results[0].similarity == pytest.approx(1.0, abs=1e-6)

    def test_invalid_threshold_includes_scope(self, loaded_cache, mock_logger):
        with pytest.raises(InvalidSearchParameterError) as exc_info:
            loaded_cache.search([1.0, 0.0, 0.0, 0.0], {"threshold": 1.5})

        assert exc_info.value.context["organization_id"] == "org-123"
        assert exc_info.value.context["chatbot_config_id"] == "config-456"
        assert loaded_cache.get_stats().searches_performed == 0
        mock_logger.log_error.assert_called_once()

    def test_invalid_options_checked_before_initialization(self, cache):
        with pytest.raises(InvalidSearchParameterError):
            cache.search([1.0, 0.0], {"limit": 0})

    def test_search_before_initialize(self, cache):
        with pytest.raises(OrchestrationError) as exc_info:
            cache.search([1.0, 0.0])

        assert exc_info.value.operation == "search"
        assert exc_info.value.context["organization_id"] == "org-123"

    def test_category_filter(self, loaded_cache):
        results = loaded_cache.search([0.0, 0.0, 0.0, 1.0], {"threshold": 0.0, "category_filter": "pricing"})
        assert [r.item.id for r in results] == ["item-3"]

    def test_search_with_debug(self, loaded_cache):
        outcome = loaded_cache.search_with_debug([1.0, 0.0, 0.0, 0.0], {"threshold": 0.5})

        assert [r.item.id for r in outcome.results] == ["item-1"]
        assert len(outcome.debug_info) == 3

    def test_search_marks_records_accessed(self, loaded_cache):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0])
        loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        assert all(r.access_count == 2 for r in loaded_cache.store.records())

    def test_search_logs_metrics(self, loaded_cache, mock_logger):
        mock_logger.reset_mock()

        loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        mock_logger.log_metrics.assert_called_once()
        name, _, metrics = mock_logger.log_metrics.call_args[0]
        assert name == "cached-vector-search"
        assert metrics["vectors_searched"] == 3

    def test_mismatched_query_finds_nothing(self, loaded_cache):
        outcome = loaded_cache.search_with_debug([1.0, 0.0], {"threshold": 0.0})

        assert outcome.results == []
        assert all(d.error for d in outcome.debug_info)

    def test_exact_match_at_threshold_one(self, cache):
        vector = [0.1, 0.2, 0.3, 0.7]
        cache.initialize([(make_item("a"), vector)])

        outcome = cache.search_with_debug(vector, {"threshold": 1.0})

        assert [r.item.id for r in outcome.results] == ["a"]
        assert outcome.debug_info[0].similarity == 1.0

    @pytest.mark.parametrize("query", [["x", "y"], [float("nan"), 0.0, 0.0, 0.0], [[1.0, 0.0, 0.0, 0.0]]])
    def test_malformed_query_raises_with_scope(self, loaded_cache, mock_logger, query):
        with pytest.raises(InvalidSearchParameterError) as exc_info:
            loaded_cache.search(query)

        assert exc_info.value.context["organization_id"] == "org-123"
        assert exc_info.value.context["chatbot_config_id"] == "config-456"
        assert loaded_cache.get_stats().searches_performed == 0
        mock_logger.log_error.assert_called_once()

    def test_unexpected_failure_wrapped(self, loaded_cache, monkeypatch):
        def broken_search(*args, **kwargs):
            raise RuntimeError("scan failed")

        monkeypatch.setattr("knowledge_cache.core.orchestrator.search_vectors", broken_search)

        with pytest.raises(OrchestrationError) as exc_info:
            loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        assert exc_info.value.context["cache_size"] == 3
        assert "scan failed" in exc_info.value.context["error"]


class TestMonitoring:
    """Test statistics, health reporting and clear."""

    def test_hit_rate_after_initialize(self, loaded_cache):
        assert loaded_cache.get_stats().cache_hit_rate == 1.0

    def test_hit_rate_counts_searches_with_results(self, loaded_cache):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0], {"threshold": 0.9})   # hit
        loaded_cache.search([-1.0, 0.0, 0.0, 0.0], {"threshold": 0.9})  # miss

        stats = loaded_cache.get_stats()
        assert stats.searches_performed == 2
        assert stats.cache_hits == 1
        assert stats.cache_hit_rate == pytest.approx(0.5)
        assert 0.0 <= stats.cache_hit_rate <= 1.0

    def test_hit_rate_stays_in_range(self, loaded_cache):
        rng = np.random.default_rng(11)
        for _ in range(25):
            loaded_cache.search(rng.normal(size=4), {"threshold": 0.6})
            assert 0.0 <= loaded_cache.get_stats().cache_hit_rate <= 1.0

    def test_stats_before_initialize(self, cache):
        stats = cache.get_stats()

        assert stats.total_vectors == 0
        assert stats.memory_usage_kb == 0.0
        assert stats.cache_hit_rate == 1.0

    def test_stats_after_load(self, loaded_cache):
        stats = loaded_cache.get_stats()

        assert stats.total_vectors == 3
        assert stats.memory_limit_kb == loaded_cache.config.max_memory_kb
        assert stats.memory_usage_kb == loaded_cache.memory_usage_kb()

    def test_clear(self, loaded_cache, mock_logger):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        assert loaded_cache.clear() is True

        mock_logger.log_vector_operation.assert_called_once_with(
            "clear", "org-123/config-456", {"previous_size": 3}
        )

        stats = loaded_cache.get_stats()
        assert stats.total_vectors == 0
        assert stats.searches_performed == 0
        assert not loaded_cache.is_initialized
        with pytest.raises(OrchestrationError):
            loaded_cache.search([1.0, 0.0, 0.0, 0.0])

    def test_health_report(self, loaded_cache, mock_logger):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        report = loaded_cache.get_health_report()

        assert report.stats.total_vectors == 3
        assert report.health_indicators.memory_health == "good"
        assert report.overall_health in ("excellent", "good", "warning", "critical")
        mock_logger.log_message.assert_any_call(f"Cache health: {report.overall_health}")

    def test_efficiency_metrics(self, loaded_cache):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0])

        metrics = loaded_cache.get_efficiency_metrics()

        assert metrics.total_accesses == 3
        assert metrics.cold_vectors == 0

    def test_access_patterns(self, loaded_cache):
        loaded_cache.search([1.0, 0.0, 0.0, 0.0], {"category_filter": "faq"})

        report = loaded_cache.analyze_access_patterns()

        assert report.total_vectors == 3
        assert report.access_distribution == {"0-0": 0, "1-1": 3}


class TestErrorTaxonomy:

    def test_errors_share_base(self):
        assert issubclass(OrchestrationError, VectorCacheError)
        assert issubclass(InvalidSearchParameterError, VectorCacheError)

    def test_orchestration_error_to_dict(self):
        cause = InvalidSearchParameterError("bad limit", {"limit": 0})
        error = OrchestrationError("search", "Cached vector search failed", {"organization_id": "org-1"}, cause)

        data = error.to_dict()

        assert data["error_type"] == "ORCHESTRATION_FAILURE"
        assert data["details"]["operation"] == "search"
        assert data["details"]["cause_type"] == "INVALID_SEARCH_PARAMETER"
        assert data["details"]["cause_context"] == {"limit": 0}
