"""
FAISS-backed local vector store.
Metadata is kept beside the index; filters are applied after the similarity search.
"""

from typing import Any, Dict, List, Optional
import numpy as np

from .index import IVectorStore, matches_filter
from .types import VectorRecord, QueryResult


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 1536):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.faiss = faiss
        self.dimension = dimension
        # Inner product over normalized vectors is cosine similarity
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))

        self.id_to_int = {}       # record id -> faiss int64 id
        self.int_to_id = {}       # faiss int64 id -> record id
        self.id_to_metadata = {}  # record id -> metadata
        self.next_int_id = 0

    def _prepare(self, vector: List[float]) -> np.ndarray:
        if len(vector) != self.dimension:
            raise ValueError(f"Vector dimension {len(vector)} does not match expected dimension {self.dimension}")
        array = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(array)
        if norm > 0:
            array = array / norm
        return array.reshape(1, -1)

    def upsert(self, records: List[VectorRecord]) -> int:
        if not records:
            return 0

        # Validate every vector before touching the index
        prepared = [(record, self._prepare(record.vector)) for record in records]

        for record, array in prepared:
            if record.id in self.id_to_int:
                int_id = self.id_to_int[record.id]
                self.index.remove_ids(np.array([int_id], dtype=np.int64))
            else:
                int_id = self.next_int_id
                self.next_int_id += 1
                self.id_to_int[record.id] = int_id
                self.int_to_id[int_id] = record.id

            self.index.add_with_ids(array, np.array([int_id], dtype=np.int64))
            self.id_to_metadata[record.id] = dict(record.metadata)

        return len(records)

    def query(self, vector: List[float], top_k: int = 3,
              filter: Optional[Dict[str, Any]] = None) -> List[QueryResult]:
        if not self.index.ntotal or top_k <= 0:
            return []

        query_array = self._prepare(vector)
        # Filtering happens after the search, so scan everything when filtered
        k = self.index.ntotal if filter else min(top_k, self.index.ntotal)
        scores, ids = self.index.search(query_array, k)

        results = []
        for score, int_id in zip(scores[0], ids[0]):
            int_id = int(int_id)
            if int_id < 0 or int_id not in self.int_to_id:
                continue
            record_id = self.int_to_id[int_id]
            metadata = self.id_to_metadata.get(record_id, {})
            if not matches_filter(metadata, filter):
                continue
            results.append(QueryResult(id=record_id, score=float(score), metadata=dict(metadata)))
            if len(results) >= top_k:
                break
        return results

    def count(self) -> Optional[int]:
        return int(self.index.ntotal)

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        self.index = self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(self.dimension))
        self.id_to_int.clear()
        self.int_to_id.clear()
        self.id_to_metadata.clear()
        self.next_int_id = 0
