"""
Vector record store - one in-memory map per (organization, chatbot configuration) scope.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional

from .types import CachedVectorRecord


def make_cache_key(organization_id: str, chatbot_config_id: str, item_id: str) -> str:
    """Build the scoped key a record is stored under."""
    return f"{organization_id}_{chatbot_config_id}_{item_id}"


class IVectorRecordStore(ABC):
    """Abstract interface for cached vector record storage."""

    @abstractmethod
    def put(self, record: CachedVectorRecord) -> None:
        """Add or replace the record for its knowledge item."""
        pass

    @abstractmethod
    def get(self, item_id: str) -> Optional[CachedVectorRecord]:
        """Get a record by knowledge item ID."""
        pass

    @abstractmethod
    def remove(self, item_id: str) -> bool:
        """Remove a record by knowledge item ID. Returns True if it existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    @abstractmethod
    def records(self) -> List[CachedVectorRecord]:
        """All records in insertion order."""
        pass

    @abstractmethod
    def ids(self) -> List[str]:
        """Knowledge item IDs in insertion order."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    @abstractmethod
    def __contains__(self, item_id: object) -> bool:
        pass


class InMemoryVectorRecordStore(IVectorRecordStore):
    """Dict-backed record store keyed by scoped cache key."""

    def __init__(self, organization_id: str, chatbot_config_id: str):
        self.organization_id = organization_id
        self.chatbot_config_id = chatbot_config_id
        self._records: Dict[str, CachedVectorRecord] = {}  # cache_key -> record

    def _key(self, item_id: str) -> str:
        return make_cache_key(self.organization_id, self.chatbot_config_id, item_id)

    def put(self, record: CachedVectorRecord) -> None:
        self._records[self._key(record.item.id)] = record

    def get(self, item_id: str) -> Optional[CachedVectorRecord]:
        return self._records.get(self._key(item_id))

    def remove(self, item_id: str) -> bool:
        key = self._key(item_id)
        if key in self._records:
            del self._records[key]
            return True
        return False

    def clear(self) -> None:
        self._records.clear()

    def records(self) -> List[CachedVectorRecord]:
        return list(self._records.values())

    def ids(self) -> List[str]:
        return [record.item.id for record in self._records.values()]

    def __iter__(self) -> Iterator[CachedVectorRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self._key(item_id) in self._records
