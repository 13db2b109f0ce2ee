"""
Vector store client: a pure proxy over a backend with input/output normalization.
Owns no cache and no retry state.
"""

from typing import Any, List, Mapping, Optional

from ..core.errors import StoreError
from ..util.logging import logger
from .index import IVectorStore
from .types import (
    ArchiveHit,
    ConversationHit,
    QueryResult,
    VectorRecord,
    is_scalar,
    normalize_metadata,
)


class VectorStoreClient:
    """Upsert and filtered top-K query against a vector store backend."""

    def __init__(self, store: IVectorStore):
        self.store = store

    @property
    def provider(self) -> str:
        return type(self.store).__name__

    def upsert(self, records: List[VectorRecord]) -> int:
        """
        Write records, overwriting existing ids.

        Any backend failure is raised as a single StoreError; there is no
        partial-success contract.
        """
        if not records:
            return 0

        normalized = [
            VectorRecord(id=r.id, vector=list(r.vector), metadata=normalize_metadata(r.metadata))
            for r in records
        ]
        try:
            written = self.store.upsert(normalized)
        except StoreError:
            raise
        except Exception as e:
            logger.log_vector_operation("upsert", normalized[0].id, {
                "batch_size": len(normalized),
                "error": str(e)[:200],
            }, status="failed")
            raise StoreError(f"Vector upsert failed: {e}", payload=str(e)) from e

        logger.log_vector_operation("upsert", normalized[0].id, {
            "batch_size": len(normalized),
            "written": written,
        })
        return written

    def query(self, vector: List[float], top_k: int = 3,
              filter: Optional[Mapping[str, Any]] = None) -> List[QueryResult]:
        """Similarity query; filter is an exact-match conjunction over scalar metadata."""
        clean_filter = None
        if filter:
            bad_keys = [k for k, v in filter.items() if not is_scalar(v)]
            if bad_keys:
                raise StoreError(f"Filter values must be scalars: {bad_keys}")
            clean_filter = dict(filter)

        try:
            results = self.store.query(vector, top_k=top_k, filter=clean_filter)
        except StoreError:
            raise
        except Exception as e:
            logger.log_vector_operation("query", "-", {"top_k": top_k, "error": str(e)[:200]},
                                        status="failed")
            raise StoreError(f"Vector query failed: {e}", payload=str(e)) from e

        logger.debug(f"vector.query top_k={top_k} filter={clean_filter} hits={len(results)}")
        return results[:top_k]

    def query_archive(self, vector: List[float], top_k: int = 3,
                      filter: Optional[Mapping[str, Any]] = None) -> List[ArchiveHit]:
        return self.archive_hits(self.query(vector, top_k, filter))

    @staticmethod
    def archive_hits(results: List[QueryResult]) -> List[ArchiveHit]:
        return [ArchiveHit.from_result(r) for r in results]

    @staticmethod
    def conversation_hits(results: List[QueryResult]) -> List[ConversationHit]:
        return [ConversationHit.from_result(r) for r in results]

    def count(self) -> Optional[int]:
        try:
            return self.store.count()
        except Exception as e:
            logger.warning(f"Vector store count unavailable: {e}")
            return None

