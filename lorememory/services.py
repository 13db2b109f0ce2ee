"""
Service container.

Clients are built once at process start and shared by reference; the API
lifespan and the CLI scripts both go through build_services().
"""

from dataclasses import dataclass
from typing import Optional

from .chat.turn import ChatTurnService
from .core import config
from .llm.completion import CompletionClient
from .memory.archive import ArchiveService
from .memory.composer import RetrievalComposer
from .memory.consistency import ConsistencyValidator
from .memory.conversation import ConversationMemory
from .vector.chunker import TextChunker
from .vector.embeddings import EmbeddingGateway
from .vector.index import IVectorStore
from .vector.store_client import VectorStoreClient


@dataclass
class MemoryServices:
    chunker: TextChunker
    gateway: EmbeddingGateway
    store: VectorStoreClient
    archive: ArchiveService
    conversations: ConversationMemory
    composer: RetrievalComposer
    completion: CompletionClient
    validator: ConsistencyValidator
    turns: ChatTurnService

    @classmethod
    def assemble(cls, chunker: TextChunker, gateway: EmbeddingGateway, store: IVectorStore,
                 completion: CompletionClient, archive_top_k: int = 3, history_top_k: int = 3,
                 consistency_top_k: int = 5, history_window: int = 5) -> "MemoryServices":
        """Wire the services around already-constructed external clients."""
        client = VectorStoreClient(store)
        archive = ArchiveService(chunker, gateway, client)
        conversations = ConversationMemory(gateway, client)
        composer = RetrievalComposer(archive, conversations,
                                     archive_top_k=archive_top_k, history_top_k=history_top_k)
        validator = ConsistencyValidator(archive, completion, top_k=consistency_top_k)
        turns = ChatTurnService(composer, completion, conversations, validator,
                                history_window=history_window)
        return cls(
            chunker=chunker,
            gateway=gateway,
            store=client,
            archive=archive,
            conversations=conversations,
            composer=composer,
            completion=completion,
            validator=validator,
            turns=turns,
        )


def build_services(store: Optional[IVectorStore] = None) -> MemoryServices:
    """Build services from configuration."""
    return MemoryServices.assemble(
        chunker=config.get_chunker(),
        gateway=config.get_embedding_gateway(),
        store=store if store is not None else config.get_vector_store(),
        completion=config.get_completion_client(),
        archive_top_k=config.ARCHIVE_TOP_K,
        history_top_k=config.HISTORY_TOP_K,
        consistency_top_k=config.CONSISTENCY_TOP_K,
        history_window=config.HISTORY_WINDOW,
    )
