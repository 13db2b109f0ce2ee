"""
Retrieval composer: fuses archive facts and conversation memory into one
context block appended to a persona's system prompt.
"""

import asyncio
from typing import List

from .archive import ArchiveService
from .conversation import ConversationMemory
from ..personas import Persona
from ..util.logging import logger
from ..vector.types import ArchiveHit, ConversationHit

ARCHIVE_HEADER = "[Relevant memory archive]"
HISTORY_HEADER = "[Historical dialogue memory]"
CLOSING_INSTRUCTION = "Answer based on the memories above and stay consistent with your persona."


def render_context(archive_hits: List[ArchiveHit], history_hits: List[ConversationHit]) -> str:
    """
    Build the context block from retrieved hits.

    Archive texts keep the store's order and are separated by blank lines.
    Returns "" when both lists are empty.
    """
    block = ""

    archive_texts = [hit.text for hit in archive_hits if hit.text]
    if archive_texts:
        block += f"\n\n{ARCHIVE_HEADER}\n" + "\n\n".join(archive_texts)

    history_entries = [
        f"User once asked: {hit.question or ''}\nYou once answered: {hit.answer or ''}"
        for hit in history_hits
        if hit.question or hit.answer
    ]
    if history_entries:
        block += f"\n\n{HISTORY_HEADER}\n" + "\n\n".join(history_entries)

    if block:
        block += f"\n\n{CLOSING_INSTRUCTION}"
    return block


class RetrievalComposer:
    """Runs archive and conversation reads concurrently and renders the context block."""

    def __init__(self, archive: ArchiveService, conversations: ConversationMemory,
                 archive_top_k: int = 3, history_top_k: int = 3):
        self.archive = archive
        self.conversations = conversations
        self.archive_top_k = archive_top_k
        self.history_top_k = history_top_k

    async def compose(self, query: str, persona_id: str) -> str:
        archive_hits, history_hits = await asyncio.gather(
            asyncio.to_thread(self.archive.persona_facts, query, persona_id, self.archive_top_k),
            asyncio.to_thread(self.conversations.recall, query, persona_id, self.history_top_k),
        )
        logger.log_retrieval(persona_id, len(archive_hits), len(history_hits))
        return render_context(archive_hits, history_hits)

    async def build_system_prompt(self, persona: Persona, query: str) -> str:
        """Persona prompt plus the context block; personas without retrieval skip the reads."""
        if not persona.retrieval:
            return persona.prompt
        return persona.prompt + await self.compose(query, persona.id)
