"""
Embedding providers and the embedding gateway.

The gateway enforces the index dimension and serializes batch ingestion with
a fixed delay between provider calls. No retries happen at this layer.
"""

from abc import ABC, abstractmethod
import hashlib
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..core.errors import EmbeddingError
from ..util.logging import logger


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for offline runs and tests.

    Vectors are derived from repeated SHA-256 digests of the text, so the same
    input always maps to the same vector without any model dependency.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        vector: list[float] = []
        counter = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).hexdigest()
            for i in range(0, len(digest), 8):
                if len(vector) >= self.dimension:
                    break
                value = int(digest[i:i + 8], 16)
                # Map to [-1, 1] for cosine similarity
                vector.append((value / 2**32) * 2 - 1)
            counter += 1
        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class DashScopeEmbedding(IEmbeddingProvider):
    """DashScope text-embedding endpoint.

    Request: {model, input: {texts: [text]}, parameters: {text_type}}.
    The vector is read from output.embeddings[0].embedding; anything else is
    an EmbeddingError carrying the raw response body.
    """

    ENDPOINT = "/services/embeddings/text-embedding/text-embedding"

    def __init__(self, api_key: str, model: str = "text-embedding-v2", dimension: int = 1536,
                 text_type: str = "document",
                 base_url: str = "https://dashscope.aliyuncs.com/api/v1",
                 timeout: float = 60.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension
        self.text_type = text_type
        self.url = base_url.rstrip("/") + self.ENDPOINT
        self.timeout = timeout
        self.session = session or requests.Session()

    def embed_text(self, text: str) -> list[float]:
        payload = {
            "model": self.model,
            "input": {"texts": [text]},
            "parameters": {"text_type": self.text_type},
        }
        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            raise EmbeddingError(
                f"Embedding failed: non-JSON response (HTTP {response.status_code})",
                payload=response.text,
            )

        vector = _extract_embedding(data)
        if vector is None:
            message = data.get("message") if isinstance(data, dict) else None
            raise EmbeddingError(f"Embedding failed: {message or 'Unknown error'}", payload=data)
        return vector

    def get_dimension(self) -> int:
        return self.dimension


def _extract_embedding(data: Any) -> Optional[list[float]]:
    try:
        vector = data["output"]["embeddings"][0]["embedding"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(vector, list) or not vector:
        return None
    try:
        return [float(x) for x in vector]
    except (TypeError, ValueError):
        return None


class EmbeddingGateway:
    """
    Converts text to fixed-dimension vectors through a provider.

    Query-time callers use embed(); batch ingestion uses embed_batch(), which
    calls the provider sequentially with batch_delay_ms between calls.
    """

    def __init__(self, provider: IEmbeddingProvider, dimension: Optional[int] = None,
                 batch_delay_ms: int = 200, sleep: Callable[[float], None] = time.sleep):
        self.provider = provider
        self.dimension = dimension if dimension is not None else provider.get_dimension()
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model", type(self.provider).__name__)

    def embed(self, text: str) -> list[float]:
        """Embed one text; raises EmbeddingError on a dimension mismatch."""
        start = time.time()
        try:
            vector = self.provider.embed_text(text)
        except EmbeddingError as e:
            logger.log_embedding_call(self.model_name, len(text), status="failed",
                                      details={"error": e.message})
            raise

        if vector is None or len(vector) != self.dimension:
            got = 0 if vector is None else len(vector)
            logger.log_embedding_call(self.model_name, len(text), status="failed",
                                      details={"expected_dim": self.dimension, "got_dim": got})
            raise EmbeddingError(
                f"Embedding dimension {got} does not match index dimension {self.dimension}",
                payload={"expected": self.dimension, "received": got},
            )

        logger.log_embedding_call(self.model_name, len(text), details={
            "duration_ms": round((time.time() - start) * 1000, 2)
        })
        return list(vector)

    def embed_batch(self, texts: List[str], on_progress: Optional[Callable[[int, int], None]] = None) -> List[list[float]]:
        """
        Embed texts one at a time with a delay between provider calls.

        The first failure aborts the batch; no partial result is returned.
        """
        vectors: List[list[float]] = []
        total = len(texts)
        for i, text in enumerate(texts):
            if on_progress:
                on_progress(i + 1, total)
            vectors.append(self.embed(text))
            if i < total - 1 and self.batch_delay_ms > 0:
                self._sleep(self.batch_delay_ms / 1000.0)
        return vectors

    def info(self) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "dimension": self.dimension,
            "batch_delay_ms": self.batch_delay_ms,
        }
