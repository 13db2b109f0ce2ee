"""
Conversation memory: one vector record per completed turn, partitioned by persona.

Record ids are "conv-<persona>-<epochMillis>". Two turns for the same persona in
the same millisecond share an id and the later write wins.
"""

import time
from typing import Callable, List

from ..util.logging import logger, truncate
from ..vector.embeddings import EmbeddingGateway
from ..vector.store_client import VectorStoreClient
from ..vector.types import CONVERSATION_TYPE, ConversationHit, ConversationMetadata, VectorRecord


def render_turn(question: str, answer: str) -> str:
    """Text that a stored turn is embedded from."""
    return f"User asked: {question}\nAI answered: {answer}"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class ConversationMemory:
    """Writes completed turns and recalls the most relevant prior turns for a persona."""

    def __init__(self, gateway: EmbeddingGateway, store: VectorStoreClient,
                 clock: Callable[[], int] = _epoch_millis):
        self.gateway = gateway
        self.store = store
        self._clock = clock

    def record(self, question: str, answer: str, persona_id: str) -> str:
        """Embed and store one turn; returns the record id."""
        timestamp = self._clock()
        record_id = f"conv-{persona_id}-{timestamp}"
        text = render_turn(question, answer)

        vector = self.gateway.embed(text)
        metadata = ConversationMetadata(
            role=persona_id,
            question=question,
            answer=answer,
            text=text,
            timestamp=timestamp,
        )
        self.store.upsert([VectorRecord(id=record_id, vector=vector, metadata=metadata.to_metadata())])
        logger.log_vector_operation("conversation.record", record_id, {
            "persona_id": persona_id,
            "question": truncate(question),
        })
        return record_id

    def recall(self, query: str, persona_id: str, top_k: int = 3) -> List[ConversationHit]:
        """Most relevant prior turns of persona_id, never another persona's."""
        vector = self.gateway.embed(query)
        results = self.store.query(
            vector,
            top_k=top_k,
            filter={"type": CONVERSATION_TYPE, "role": persona_id},
        )

        kept = []
        for result in results:
            metadata = result.metadata or {}
            if metadata.get("role") != persona_id or metadata.get("type") != CONVERSATION_TYPE:
                logger.warning(f"Discarding conversation hit {result.id} outside persona {persona_id}")
                continue
            kept.append(result)
        return self.store.conversation_hits(kept)
