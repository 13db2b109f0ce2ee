"""
Tests for embedding providers and the embedding gateway.
"""

import pytest
import requests
from unittest.mock import Mock, call

from lorememory.core.errors import EmbeddingError
from lorememory.vector.embeddings import (
    IEmbeddingProvider,
    DeterministicHashEmbedding,
    DashScopeEmbedding,
    EmbeddingGateway,
)


class FixedProvider(IEmbeddingProvider):
    """Returns a constant vector of the given length."""

    def __init__(self, length, dimension=None):
        self.length = length
        self.dimension = dimension if dimension is not None else length
        self.calls = []

    def embed_text(self, text):
        self.calls.append(text)
        return [0.5] * self.length

    def get_dimension(self):
        return self.dimension


def _response(json_data=None, status_code=200, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


class TestDeterministicHashEmbedding:

    def test_same_text_same_vector(self):
        provider = DeterministicHashEmbedding(dimension=32)

        assert provider.embed_text("Zora's Domain") == provider.embed_text("Zora's Domain")
        assert provider.embed_text("Zora's Domain") != provider.embed_text("Gerudo Town")

    def test_dimension_and_range(self):
        provider = DeterministicHashEmbedding(dimension=100)
        vector = provider.embed_text("Hyrule")

        assert len(vector) == 100
        assert provider.get_dimension() == 100
        assert all(-1.0 <= v <= 1.0 for v in vector)


class TestEmbeddingGateway:

    def test_embed_returns_vector(self):
        gateway = EmbeddingGateway(FixedProvider(4))

        assert gateway.embed("hello") == [0.5, 0.5, 0.5, 0.5]
        assert gateway.dimension == 4

    def test_dimension_mismatch_raises(self):
        gateway = EmbeddingGateway(FixedProvider(3), dimension=4)

        with pytest.raises(EmbeddingError) as exc_info:
            gateway.embed("hello")

        assert exc_info.value.payload == {"expected": 4, "received": 3}

    def test_batch_sleeps_between_calls_only(self):
        sleep = Mock()
        provider = FixedProvider(4)
        gateway = EmbeddingGateway(provider, batch_delay_ms=200, sleep=sleep)

        vectors = gateway.embed_batch(["a", "b", "c"])

        assert len(vectors) == 3
        assert provider.calls == ["a", "b", "c"]
        assert sleep.call_args_list == [call(0.2), call(0.2)]

    def test_batch_reports_progress(self):
        progress = Mock()
        gateway = EmbeddingGateway(FixedProvider(4), batch_delay_ms=0)

        gateway.embed_batch(["a", "b"], on_progress=progress)

        assert progress.call_args_list == [call(1, 2), call(2, 2)]

    def test_batch_aborts_on_first_failure(self):
        sleep = Mock()
        provider = Mock(spec=IEmbeddingProvider)
        provider.get_dimension.return_value = 2
        provider.embed_text.side_effect = [[0.1, 0.2], EmbeddingError("Embedding failed: quota"), [0.3, 0.4]]
        gateway = EmbeddingGateway(provider, batch_delay_ms=200, sleep=sleep)

        with pytest.raises(EmbeddingError):
            gateway.embed_batch(["a", "b", "c"])

        assert provider.embed_text.call_count == 2
        assert sleep.call_count == 1

    def test_info(self):
        gateway = EmbeddingGateway(DeterministicHashEmbedding(dimension=8), batch_delay_ms=50)

        assert gateway.info() == {
            "model": "DeterministicHashEmbedding",
            "dimension": 8,
            "batch_delay_ms": 50,
        }


class TestDashScopeEmbedding:

    def test_successful_embedding(self):
        session = Mock()
        session.post.return_value = _response({"output": {"embeddings": [{"embedding": [0.1, 0.2, 0.3]}]}})
        provider = DashScopeEmbedding(api_key="sk-test", dimension=3, session=session)

        assert provider.embed_text("Mipha") == [0.1, 0.2, 0.3]

        args, kwargs = session.post.call_args
        assert args[0].endswith("/services/embeddings/text-embedding/text-embedding")
        assert kwargs["json"] == {
            "model": "text-embedding-v2",
            "input": {"texts": ["Mipha"]},
            "parameters": {"text_type": "document"},
        }
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"

    def test_error_body_raises_with_payload(self):
        body = {"code": "InvalidApiKey", "message": "Invalid API-key provided."}
        session = Mock()
        session.post.return_value = _response(body, status_code=401)
        provider = DashScopeEmbedding(api_key="bad", session=session)

        with pytest.raises(EmbeddingError) as exc_info:
            provider.embed_text("Mipha")

        assert "Invalid API-key provided." in exc_info.value.message
        assert exc_info.value.payload == body

    def test_non_json_response_raises(self):
        session = Mock()
        session.post.return_value = _response(ValueError("no json"), status_code=502, text="Bad Gateway")
        provider = DashScopeEmbedding(api_key="sk-test", session=session)

        with pytest.raises(EmbeddingError) as exc_info:
            provider.embed_text("Mipha")

        assert exc_info.value.payload == "Bad Gateway"

    def test_transport_error_raises(self):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("connection refused")
        provider = DashScopeEmbedding(api_key="sk-test", session=session)

        with pytest.raises(EmbeddingError):
            provider.embed_text("Mipha")
