"""
Configuration for the persona memory service.
All settings come from the environment (optionally a .env file).
"""

import os

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()

# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Provider credentials (DashScope serves both embeddings and completions)
DASHSCOPE_API_KEY = os.getenv("DASHSCOPE_API_KEY", "")
DASHSCOPE_BASE_URL = os.getenv("DASHSCOPE_BASE_URL", "https://dashscope.aliyuncs.com/api/v1")
HTTP_TIMEOUT_SEC = float(os.getenv("HTTP_TIMEOUT_SEC", "60"))

# Embedding configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "dashscope")  # dashscope|hash
EMBED_MODEL = os.getenv("EMBED_MODEL", "text-embedding-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "1536"))
EMBED_TEXT_TYPE = os.getenv("EMBED_TEXT_TYPE", "document")
EMBED_BATCH_DELAY_MS = int(os.getenv("EMBED_BATCH_DELAY_MS", "200"))

# Completion configuration
CHAT_MODEL = os.getenv("CHAT_MODEL", "qwen-turbo")

# Vector store configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "pinecone")  # pinecone|memory|faiss
PINECONE_API_KEY = os.getenv("PINECONE_API_KEY", "")
PINECONE_INDEX = os.getenv("PINECONE_INDEX", "")
PINECONE_HOST = os.getenv("PINECONE_HOST") or None

# Chunking configuration
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "500"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "50"))

# Retrieval configuration
ARCHIVE_TOP_K = int(os.getenv("ARCHIVE_TOP_K", "3"))
HISTORY_TOP_K = int(os.getenv("HISTORY_TOP_K", "3"))
CONSISTENCY_TOP_K = int(os.getenv("CONSISTENCY_TOP_K", "5"))
HISTORY_WINDOW = int(os.getenv("HISTORY_WINDOW", "5"))

# HTTP surface
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# Version string
VERSION = "0.3.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_chunker():
    """Get a chunker built from the configured chunk size and overlap."""
    from ..vector.chunker import TextChunker
    return TextChunker(chunk_size=CHUNK_SIZE, chunk_overlap=CHUNK_OVERLAP)


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    if EMBED_PROVIDER == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=EMBED_DIM)
    elif EMBED_PROVIDER == "dashscope":
        from ..vector.embeddings import DashScopeEmbedding
        return DashScopeEmbedding(
            api_key=DASHSCOPE_API_KEY,
            model=EMBED_MODEL,
            dimension=EMBED_DIM,
            text_type=EMBED_TEXT_TYPE,
            base_url=DASHSCOPE_BASE_URL,
            timeout=HTTP_TIMEOUT_SEC,
        )
    raise ConfigError(f"Unknown EMBED_PROVIDER: {EMBED_PROVIDER}")


def get_embedding_gateway():
    """Get an embedding gateway over the configured provider."""
    from ..vector.embeddings import EmbeddingGateway
    return EmbeddingGateway(
        provider=get_embedding_provider(),
        dimension=EMBED_DIM,
        batch_delay_ms=EMBED_BATCH_DELAY_MS,
    )


def get_vector_store():
    """Get configured vector store backend."""
    if VECTOR_PROVIDER == "pinecone":
        from ..vector.pinecone_store import PineconeVectorStore
        return PineconeVectorStore(
            api_key=PINECONE_API_KEY,
            index_name=PINECONE_INDEX,
            host=PINECONE_HOST,
        )
    elif VECTOR_PROVIDER == "memory":
        from ..vector.index import SimpleInMemoryVectorStore
        return SimpleInMemoryVectorStore()
    elif VECTOR_PROVIDER == "faiss":
        from ..vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension=EMBED_DIM)
    raise ConfigError(f"Unknown VECTOR_PROVIDER: {VECTOR_PROVIDER}")


def get_completion_client():
    """Get the chat-completion client for the configured model."""
    from ..llm.completion import CompletionClient
    return CompletionClient(
        api_key=DASHSCOPE_API_KEY,
        model=CHAT_MODEL,
        base_url=DASHSCOPE_BASE_URL,
        timeout=HTTP_TIMEOUT_SEC,
    )


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if CHUNK_SIZE <= 0:
        issues.append("CHUNK_SIZE must be > 0")
    if CHUNK_OVERLAP < 0:
        issues.append("CHUNK_OVERLAP must be >= 0")
    if CHUNK_SIZE <= CHUNK_OVERLAP:
        issues.append("CHUNK_SIZE must be greater than CHUNK_OVERLAP")

    if EMBED_PROVIDER not in ["dashscope", "hash"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")
    if EMBED_DIM <= 0:
        issues.append("EMBED_DIM must be > 0")
    if EMBED_BATCH_DELAY_MS < 0:
        issues.append("EMBED_BATCH_DELAY_MS must be >= 0")
    if EMBED_PROVIDER == "dashscope" and not DASHSCOPE_API_KEY:
        issues.append("EMBED_PROVIDER=dashscope requires DASHSCOPE_API_KEY")

    if VECTOR_PROVIDER not in ["pinecone", "memory", "faiss"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")
    if VECTOR_PROVIDER == "pinecone" and not (PINECONE_API_KEY and PINECONE_INDEX):
        issues.append("VECTOR_PROVIDER=pinecone requires PINECONE_API_KEY and PINECONE_INDEX")

    for name, value in (("ARCHIVE_TOP_K", ARCHIVE_TOP_K), ("HISTORY_TOP_K", HISTORY_TOP_K),
                        ("CONSISTENCY_TOP_K", CONSISTENCY_TOP_K)):
        if value < 1:
            issues.append(f"{name} must be >= 1")

    return issues
