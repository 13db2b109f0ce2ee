"""
Lore archive: ingestion (chunk -> embed -> upsert) and filtered archive queries.
"""

from typing import Any, Dict, List, Mapping, Optional

from ..core.errors import LoreMemoryError
from ..util.logging import logger
from ..vector.chunker import TextChunker
from ..vector.embeddings import EmbeddingGateway
from ..vector.store_client import VectorStoreClient
from ..vector.types import ArchiveHit, ArchiveMetadata, VectorRecord


class ArchiveService:
    """Writes source documents into the archive and reads persona facts back."""

    def __init__(self, chunker: TextChunker, gateway: EmbeddingGateway, store: VectorStoreClient):
        self.chunker = chunker
        self.gateway = gateway
        self.store = store

    def ingest(self, content: str, source_id: str, type: str = "character",
               extra: Optional[Mapping[str, Any]] = None) -> int:
        """
        Chunk, embed and upsert a source document.

        Embedding is sequential with the gateway's batch delay. An embedding
        failure aborts the whole document before anything is written.

        Args:
            content: Raw document text
            source_id: Persona / source identifier; chunk ids are "<source_id>-<i>"
            type: Archive record type
            extra: Additional scalar metadata stored on every chunk

        Returns:
            Number of vectors written
        """
        chunks = self.chunker.split(content, source_id, extra)
        if not chunks:
            logger.log_ingestion(source_id, 0, 0, status="skipped", details={"reason": "empty content"})
            return 0

        def progress(done: int, total: int) -> None:
            logger.debug(f"Embedding {done}/{total} for {source_id}")

        try:
            vectors = self.gateway.embed_batch([c.text for c in chunks], on_progress=progress)
            records = [
                VectorRecord(
                    id=chunk.id,
                    vector=vector,
                    metadata=ArchiveMetadata(
                        id=source_id,
                        type=type,
                        text=chunk.text,
                        extra=chunk.metadata,
                    ).to_metadata(),
                )
                for chunk, vector in zip(chunks, vectors)
            ]
            written = self.store.upsert(records)
        except LoreMemoryError as e:
            logger.log_ingestion(source_id, len(chunks), 0, status="failed", details={"error": e.message})
            raise

        logger.log_ingestion(source_id, len(chunks), written)
        return written

    def query(self, query: str, top_k: int = 3,
              filter: Optional[Dict[str, Any]] = None) -> List[ArchiveHit]:
        """Embed the query and return the top_k archive hits matching filter."""
        vector = self.gateway.embed(query)
        return self.store.query_archive(vector, top_k=top_k, filter=filter)

    def persona_facts(self, query: str, persona_id: str, top_k: int = 3) -> List[ArchiveHit]:
        """Archive hits restricted to one persona's namespace."""
        return self.query(query, top_k=top_k, filter={"id": persona_id})
