"""
Pinecone-backed vector store.
Namespaces (persona archive vs. conversation memory) are metadata filters on one index.
"""

from typing import Any, Dict, List, Optional

from pinecone import Pinecone

from ..core.errors import ConfigError
from .index import IVectorStore
from .types import VectorRecord, QueryResult


def to_pinecone_filter(filter: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Translate an exact-match filter into Pinecone's {"key": {"$eq": value}} form."""
    if not filter:
        return None
    return {key: {"$eq": value} for key, value in filter.items()}


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class PineconeVectorStore(IVectorStore):
    """IVectorStore over a Pinecone index."""

    def __init__(self, api_key: str = "", index_name: str = "", host: Optional[str] = None,
                 index: Any = None, batch_size: int = 100):
        """
        Args:
            api_key: Pinecone API key
            index_name: Name of the index to open
            host: Optional index host, skips the control-plane lookup
            index: Pre-built index handle (used instead of opening one)
            batch_size: Maximum vectors per upsert request
        """
        self.batch_size = batch_size
        if index is not None:
            self.index = index
            return

        if not api_key or not index_name:
            raise ConfigError("Pinecone store requires an API key and an index name")

        client = Pinecone(api_key=api_key)
        if host:
            self.index = client.Index(name=index_name, host=host)
        else:
            self.index = client.Index(name=index_name)

    def upsert(self, records: List[VectorRecord]) -> int:
        if not records:
            return 0

        vectors = [
            {"id": r.id, "values": list(r.vector), "metadata": dict(r.metadata)}
            for r in records
        ]
        written = 0
        for start in range(0, len(vectors), self.batch_size):
            batch = vectors[start:start + self.batch_size]
            response = self.index.upsert(vectors=batch)
            upserted = _field(response, "upserted_count")
            written += upserted if isinstance(upserted, int) else len(batch)
        return written

    def query(self, vector: List[float], top_k: int = 3,
              filter: Optional[Dict[str, Any]] = None) -> List[QueryResult]:
        kwargs: Dict[str, Any] = {
            "vector": list(vector),
            "top_k": top_k,
            "include_metadata": True,
        }
        pinecone_filter = to_pinecone_filter(filter)
        if pinecone_filter:
            kwargs["filter"] = pinecone_filter

        response = self.index.query(**kwargs)
        matches = _field(response, "matches") or []

        results = []
        for match in matches:
            score = _field(match, "score")
            results.append(QueryResult(
                id=str(_field(match, "id")),
                score=float(score) if score is not None else None,
                metadata=dict(_field(match, "metadata") or {}),
            ))
        return results

    def count(self) -> Optional[int]:
        stats = self.index.describe_index_stats()
        total = _field(stats, "total_vector_count")
        return int(total) if total is not None else None

    def clear(self) -> None:
        self.index.delete(delete_all=True)
