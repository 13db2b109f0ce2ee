"""
Chunking, embedding and vector storage for the persona memory layer.
"""

# Package initialization for vector module
from .chunker import TextChunker
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, DashScopeEmbedding, EmbeddingGateway
from .index import IVectorStore, SimpleInMemoryVectorStore, matches_filter
from .store_client import VectorStoreClient
from .types import (
    Chunk,
    VectorRecord,
    QueryResult,
    ArchiveMetadata,
    ConversationMetadata,
    ArchiveHit,
    ConversationHit,
    normalize_metadata,
)

__all__ = [
    'TextChunker',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'DashScopeEmbedding',
    'EmbeddingGateway',
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'matches_filter',
    'VectorStoreClient',
    'Chunk',
    'VectorRecord',
    'QueryResult',
    'ArchiveMetadata',
    'ConversationMetadata',
    'ArchiveHit',
    'ConversationHit',
    'normalize_metadata',
]
