"""
Recursive text chunker for archive ingestion.

Text is split on the first separator (paragraph, line, word, character) that
occurs in it; pieces that are still too long are split again with the next
separator. Adjacent small pieces are merged up to ``chunk_size`` and trailing
pieces of one chunk (at most ``chunk_overlap`` characters) are repeated at the
head of the next. When no whole piece is that short, the chunk's trailing
words (or characters) are repeated instead, as long as the next chunk stays
within ``chunk_size``.
"""

from typing import Any, List, Mapping, Optional

from ..core.errors import ConfigError
from .types import Chunk, normalize_metadata

DEFAULT_SEPARATORS = ["\n\n", "\n", " ", ""]


class TextChunker:
    """Deterministic recursive character splitter."""

    def __init__(self, chunk_size: int = 500, chunk_overlap: int = 50,
                 separators: Optional[List[str]] = None):
        if chunk_size <= 0:
            raise ConfigError(f"chunk_size must be > 0, got {chunk_size}")
        if chunk_overlap < 0:
            raise ConfigError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        if chunk_size <= chunk_overlap:
            raise ConfigError(
                f"chunk_size ({chunk_size}) must be greater than chunk_overlap ({chunk_overlap})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators is not None else list(DEFAULT_SEPARATORS)

    def split(self, text: str, source_id: str,
              metadata: Optional[Mapping[str, Any]] = None) -> List[Chunk]:
        """
        Split a document into chunks with ids "<source_id>-<i>".

        Args:
            text: Raw document text
            source_id: Identifier of the source document
            metadata: Optional metadata copied (scalars only) onto every chunk

        Returns:
            Chunks in document order; empty when the text has no content
        """
        base_metadata = normalize_metadata(metadata)
        return [
            Chunk(id=f"{source_id}-{i}", text=piece, metadata=dict(base_metadata))
            for i, piece in enumerate(self.split_text(text))
        ]

    def split_text(self, text: str) -> List[str]:
        if not text or not text.strip():
            return []
        return self._split(text, self.separators)

    def _split(self, text: str, separators: List[str], previous: str = "") -> List[str]:
        separator = separators[-1]
        remaining: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        pieces = text.split(separator) if separator else list(text)
        pieces = [p for p in pieces if p != ""]

        chunks: List[str] = []
        pending: List[str] = []
        for piece in pieces:
            if len(piece) < self.chunk_size:
                pending.append(piece)
                continue
            if pending:
                chunks.extend(self._merge(pending, separator, chunks[-1] if chunks else previous))
                pending = []
            if remaining:
                chunks.extend(self._split(piece, remaining, chunks[-1] if chunks else previous))
            else:
                chunks.append(piece)
        if pending:
            chunks.extend(self._merge(pending, separator, chunks[-1] if chunks else previous))
        return chunks

    def _merge(self, pieces: List[str], separator: str, previous: str = "") -> List[str]:
        sep_len = len(separator)
        merged: List[str] = []
        window: List[str] = []
        total = 0

        if previous and pieces:
            tail = self._tail(previous, len(pieces[0]) + sep_len)
            if tail:
                window, total = [tail], len(tail)

        for piece in pieces:
            length = len(piece)
            if total + length + (sep_len if window else 0) > self.chunk_size:
                if window:
                    joined = self._join(window, separator)
                    if joined:
                        merged.append(joined)
                    # Drop leading pieces until only the overlap remains
                    while total > self.chunk_overlap or (
                        total + length + (sep_len if window else 0) > self.chunk_size and total > 0
                    ):
                        total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                        window.pop(0)
                    if not window and joined:
                        # No whole piece fits the overlap; repeat the chunk's trailing words
                        tail = self._tail(joined, length + sep_len)
                        if tail:
                            window, total = [tail], len(tail)
            window.append(piece)
            total += length + (sep_len if len(window) > 1 else 0)

        joined = self._join(window, separator)
        if joined:
            merged.append(joined)
        return merged

    def _tail(self, text: str, reserved: int) -> str:
        """Trailing text of a chunk, at most chunk_overlap long and leaving room for ``reserved``."""
        limit = min(self.chunk_overlap, self.chunk_size - reserved)
        if limit <= 0:
            return ""
        tail = text[-limit:]
        if len(text) > limit and not text[-limit - 1].isspace() and not tail[0].isspace():
            words = tail.split(None, 1)
            if len(words) == 2:
                tail = words[1]
        return tail.strip()

    @staticmethod
    def _join(pieces: List[str], separator: str) -> str:
        return separator.join(pieces).strip()
