"""
Record and hit types shared by the chunker, embedding gateway and vector store.
Stored metadata is always flat and scalar-valued.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

Scalar = Union[str, int, float, bool]

# Reserved metadata key holding the literal text a vector was derived from
TEXT_KEY = "text"
CONVERSATION_TYPE = "conversation"


def is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def normalize_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, Scalar]:
    """Drop non-scalar values (lists, dicts, None) from a metadata mapping."""
    if not metadata:
        return {}
    return {str(k): v for k, v in metadata.items() if is_scalar(v)}


@dataclass
class Chunk:
    """Bounded text segment of a source document."""

    id: str
    """Deterministic id: "<source_id>-<index>" """

    text: str

    metadata: Dict[str, Scalar] = field(default_factory=dict)


@dataclass
class VectorRecord:
    """Represents a vector record with metadata."""

    id: str
    """Unique identifier for the vector record"""

    vector: List[float]
    """The embedding of the record's text"""

    metadata: Dict[str, Scalar]
    """Scalar metadata; always carries the source text under TEXT_KEY"""


@dataclass
class QueryResult:
    """Represents a search result from vector store."""

    id: str
    """Identifier for the matching record"""

    score: Optional[float]
    """Similarity score of the match, None when the store omits it"""

    metadata: Dict[str, Any]
    """Metadata associated with the matched record"""


@dataclass
class ArchiveMetadata:
    """Metadata of a lore archive record."""

    id: str
    """Persona / source identifier used as the exact-match filter key"""

    text: str
    type: str = "character"
    extra: Dict[str, Scalar] = field(default_factory=dict)
    """Provider-specific passthrough fields"""

    def to_metadata(self) -> Dict[str, Scalar]:
        data = normalize_metadata(self.extra)
        data.update({"id": self.id, "type": self.type, TEXT_KEY: self.text})
        return data


@dataclass
class ConversationMetadata:
    """Metadata of a stored conversation turn."""

    role: str
    question: str
    answer: str
    text: str
    timestamp: int
    """Epoch milliseconds"""

    def to_metadata(self) -> Dict[str, Scalar]:
        return {
            "type": CONVERSATION_TYPE,
            "role": self.role,
            "question": self.question,
            "answer": self.answer,
            TEXT_KEY: self.text,
            "timestamp": self.timestamp,
        }


@dataclass
class ArchiveHit:
    """Archive retrieval result."""

    score: Optional[float]
    text: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: QueryResult) -> "ArchiveHit":
        metadata = dict(result.metadata or {})
        text = metadata.get(TEXT_KEY)
        return cls(
            score=result.score,
            text=text if isinstance(text, str) else None,
            metadata=metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "text": self.text, "metadata": self.metadata}


@dataclass
class ConversationHit:
    """Conversation-memory retrieval result."""

    score: Optional[float]
    question: Optional[str]
    answer: Optional[str]

    @classmethod
    def from_result(cls, result: QueryResult) -> "ConversationHit":
        metadata = result.metadata or {}
        question = metadata.get("question")
        answer = metadata.get("answer")
        return cls(
            score=result.score,
            question=question if isinstance(question, str) else None,
            answer=answer if isinstance(answer, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "question": self.question, "answer": self.answer}
