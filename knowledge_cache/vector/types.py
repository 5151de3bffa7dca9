"""
Vector cache data types.
Knowledge items are opaque payloads; cached records own a private copy of the vector.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class KnowledgeItem:
    """Knowledge item consumed from the knowledge base."""

    id: str
    """Unique identifier of the knowledge item"""

    content: str
    """Display text"""

    category: str
    """Category tag (faq, product_info, pricing, ...)"""

    source: str
    """Source-type tag (website, document, manual, ...)"""

    tags: Tuple[str, ...] = ()
    """Free-form tags"""

    title: Optional[str] = None
    last_updated: Optional[datetime] = None


@dataclass
class CachedVectorRecord:
    """A knowledge item with its embedding and access statistics."""

    item: KnowledgeItem
    vector: np.ndarray
    last_accessed_at: datetime
    access_count: int = 0

    @classmethod
    def create(cls, item: KnowledgeItem, vector: Sequence[float], now: Optional[datetime] = None) -> 'CachedVectorRecord':
        """Build a record holding a copy of the offered vector."""
        return cls(
            item=item,
            vector=np.array(vector, dtype=np.float64),
            last_accessed_at=now or datetime.now(),
            access_count=0,
        )

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])

    def mark_accessed(self, now: datetime) -> None:
        self.last_accessed_at = now
        self.access_count += 1


@dataclass
class SearchResult:
    """A knowledge item that passed the similarity threshold."""

    item: KnowledgeItem
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.item.id, "similarity": self.similarity, "category": self.item.category,
                "source": self.item.source}


@dataclass
class SimilarityDebugEntry:
    """Score of one candidate, kept whether or not it passed the threshold."""

    id: str
    similarity: float
    passed_threshold: bool
    error: Optional[str] = None


@dataclass
class SearchOutcome:
    """Ranked results plus the full candidate score list."""

    results: List[SearchResult] = field(default_factory=list)
    debug_info: List[SimilarityDebugEntry] = field(default_factory=list)


@dataclass
class InitializationResult:
    """Outcome of a bulk load."""

    success: bool
    vectors_loaded: int
    vectors_evicted: int
    memory_usage_kb: float
    time_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "vectors_loaded": self.vectors_loaded,
            "vectors_evicted": self.vectors_evicted,
            "memory_usage_kb": self.memory_usage_kb,
            "time_ms": self.time_ms,
        }
