"""
Request/response models for the persona memory API.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any, Union

Scalar = Union[str, int, float, bool]


class HistoryEntry(BaseModel):
    question: str
    answer: str


class ChatRequest(BaseModel):
    message: str
    role: str = "general"
    history: List[HistoryEntry] = []

    @field_validator('message')
    @classmethod
    def message_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('message cannot be empty')
        return v


class ChatTurnResponse(BaseModel):
    turn_id: str
    persona_id: str
    answer: str
    signal_lost: bool


class TurnStatusResponse(BaseModel):
    turn_id: str
    persona_id: str
    question: str
    answer: str
    signal_lost: bool
    verdict: Optional[Dict[str, Any]] = None
    memory_id: Optional[str] = None
    created_at: str


class SaveTurnRequest(BaseModel):
    # Presence is checked by the endpoint so missing fields yield 400
    question: Optional[str] = None
    answer: Optional[str] = None
    role: Optional[str] = None


class SaveTurnResponse(BaseModel):
    success: bool
    id: Optional[str] = None


class ConflictCheckRequest(BaseModel):
    content: str
    role: str


class ArchiveUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    source_id: str = Field(alias="sourceId")
    type: str = "character"

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('content cannot be empty')
        return v

    @field_validator('source_id')
    @classmethod
    def source_id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('sourceId cannot be empty')
        return v


class ArchiveUploadResponse(BaseModel):
    success: bool
    chunks: int


class ArchiveQueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    filter: Optional[Dict[str, Scalar]] = None
    top_k: int = Field(default=3, alias="topK", ge=1, le=50)


class ArchiveHitModel(BaseModel):
    score: Optional[float] = None
    text: Optional[str] = None
    metadata: Dict[str, Any] = {}


class ArchiveQueryResponse(BaseModel):
    results: List[ArchiveHitModel]


class ArchiveActionRequest(BaseModel):
    """Combined archive endpoint body, dispatched on action."""
    action: str
    content: Optional[str] = None
    id: Optional[str] = None
    type: Optional[str] = "character"
    query: Optional[str] = None
    filter: Optional[Dict[str, Scalar]] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    vector_provider: str
    vector_records: Optional[int] = None
    embedding_model: str
    embedding_dimension: int
    pending_side_effects: int = 0
    config_issues: List[str] = []
