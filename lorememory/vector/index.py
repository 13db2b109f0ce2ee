"""
Vector store backend interface and the in-memory backend.
Filters are exact-match conjunctions over metadata fields.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional
import numpy as np

from .types import VectorRecord, QueryResult


def matches_filter(metadata: Mapping[str, Any], filter: Optional[Mapping[str, Any]]) -> bool:
    """True when every filter key is present in metadata with an equal value."""
    if not filter:
        return True
    for key, value in filter.items():
        if key not in metadata:
            return False
        stored = metadata[key]
        # bool is an int subclass; True must not match 1
        if isinstance(stored, bool) != isinstance(value, bool):
            return False
        if stored != value:
            return False
    return True


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def upsert(self, records: List[VectorRecord]) -> int:
        """Insert or overwrite records by id; return the number written."""
        pass

    @abstractmethod
    def query(self, vector: List[float], top_k: int = 3,
              filter: Optional[Dict[str, Any]] = None) -> List[QueryResult]:
        """Return up to top_k records matching filter, most similar first."""
        pass

    def count(self) -> Optional[int]:
        """Number of stored records, None when the backend cannot tell cheaply."""
        return None

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass


class SimpleInMemoryVectorStore(IVectorStore):
    """Simple in-memory implementation of IVectorStore using cosine similarity."""

    def __init__(self):
        self._records = {}  # record_id -> VectorRecord
        self._index = {}    # record_id -> normalized vector

    def upsert(self, records: List[VectorRecord]) -> int:
        for record in records:
            vector = np.asarray(record.vector, dtype=np.float64)
            self._records[record.id] = VectorRecord(
                id=record.id,
                vector=list(record.vector),
                metadata=dict(record.metadata),
            )
            norm = np.linalg.norm(vector)
            self._index[record.id] = vector / norm if norm > 0 else vector
        return len(records)

    def query(self, vector: List[float], top_k: int = 3,
              filter: Optional[Dict[str, Any]] = None) -> List[QueryResult]:
        if not self._index or top_k <= 0:
            return []

        query_vector = np.asarray(vector, dtype=np.float64)
        norm = np.linalg.norm(query_vector)
        if norm == 0:
            return []
        normalized_query = query_vector / norm

        scored = []
        for record_id, stored_vector in self._index.items():
            record = self._records[record_id]
            if not matches_filter(record.metadata, filter):
                continue
            if stored_vector.shape != normalized_query.shape:
                continue
            scored.append((record_id, float(np.dot(normalized_query, stored_vector))))

        # Sort by similarity (descending) and return top_k results
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            QueryResult(id=record_id, score=score, metadata=dict(self._records[record_id].metadata))
            for record_id, score in scored[:top_k]
        ]

    def get(self, record_id: str) -> Optional[VectorRecord]:
        return self._records.get(record_id)

    def count(self) -> Optional[int]:
        return len(self._records)

    def clear(self) -> None:
        """Clear all records from the store."""
        self._records.clear()
        self._index.clear()
