"""
Shared fixtures: an offline service container built on the hash embedding
provider, the in-memory vector store and a scripted completion client.
"""

import json

import pytest

from lorememory.services import MemoryServices
from lorememory.vector.chunker import TextChunker
from lorememory.vector.embeddings import DeterministicHashEmbedding, EmbeddingGateway
from lorememory.vector.index import SimpleInMemoryVectorStore
from lorememory.vector.store_client import VectorStoreClient

NO_CONFLICT_REPLY = '{"hasConflict": false, "conflictDetails": "no conflict", "suggestion": "no change needed"}'


def sse_frame(text):
    """One DashScope-style incremental output frame."""
    return f'data: {json.dumps({"output": {"text": text}})}\n\n'.encode("utf-8")


class ScriptedCompletion:
    """Completion client double: stream() replays frames, complete() returns reply."""

    def __init__(self, frames=None, reply=NO_CONFLICT_REPLY):
        self.frames = frames if frames is not None else [sse_frame("Hel"), sse_frame("lo")]
        self.reply = reply
        self.stream_calls = []
        self.complete_calls = []

    def stream(self, messages):
        self.stream_calls.append(messages)
        if isinstance(self.frames, Exception):
            raise self.frames
        return iter(list(self.frames))

    def complete(self, messages):
        self.complete_calls.append(messages)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest.fixture
def sse():
    return sse_frame


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def make_completion():
    return ScriptedCompletion


@pytest.fixture
def gateway():
    return EmbeddingGateway(DeterministicHashEmbedding(dimension=16), batch_delay_ms=0)


@pytest.fixture
def memory_store():
    return SimpleInMemoryVectorStore()


@pytest.fixture
def store_client(memory_store):
    return VectorStoreClient(memory_store)


@pytest.fixture
def services(gateway, memory_store, completion):
    return MemoryServices.assemble(
        chunker=TextChunker(chunk_size=500, chunk_overlap=50),
        gateway=gateway,
        store=memory_store,
        completion=completion,
    )
