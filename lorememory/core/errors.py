"""
Error taxonomy for the memory layer.

ConfigError, EmbeddingError, StoreError and CompletionError propagate to callers.
StreamDecodeError and ValidationDegraded are raised and recovered locally.
"""

from typing import Any, Optional


class LoreMemoryError(Exception):
    """Base exception for memory layer failures."""

    def __init__(self, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self) -> dict:
        data = {"error": self.message}
        if self.payload is not None:
            data["detail"] = self.payload
        return data


class ConfigError(LoreMemoryError):
    """Invalid configuration (e.g. chunk size not larger than overlap)."""
    pass


class EmbeddingError(LoreMemoryError):
    """Embedding provider returned no usable vector."""
    pass


class StoreError(LoreMemoryError):
    """Vector store rejected an upsert or query."""
    pass


class StreamDecodeError(LoreMemoryError):
    """A single stream frame could not be decoded."""
    pass


class ValidationDegraded(LoreMemoryError):
    """Consistency check could not produce a structured verdict."""
    pass


class CompletionError(LoreMemoryError):
    """Chat-completion provider call failed."""
    pass
