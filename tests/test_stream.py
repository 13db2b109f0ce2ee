"""
Tests for SSE stream aggregation.
"""

import json

import pytest

from lorememory.core.errors import StreamDecodeError
from lorememory.llm.stream import (
    LINK_INTERRUPTED,
    SIGNAL_LOST,
    StreamAggregator,
    aggregate,
    decode_frame,
    finalize_answer,
    is_sentinel,
)


def frame(text):
    return f'data: {json.dumps({"output": {"text": text}})}'


class TestDecodeFrame:

    def test_data_frame(self):
        assert decode_frame(frame("Hi")) == "Hi"

    def test_non_data_lines_ignored(self):
        assert decode_frame("id:1") is None
        assert decode_frame("event:result") is None
        assert decode_frame(":HTTP_STATUS/200") is None
        assert decode_frame("") is None

    def test_done_marker_ignored(self):
        assert decode_frame("data: [DONE]") is None

    def test_malformed_frame_raises(self):
        with pytest.raises(StreamDecodeError):
            decode_frame("data: {not json")

    def test_openai_style_delta(self):
        assert decode_frame('data: {"choices": [{"delta": {"content": "Yo"}}]}') == "Yo"


class TestStreamAggregator:

    def test_partials_grow_in_order(self):
        aggregator = StreamAggregator()

        partials = list(aggregator.iter_partials([frame("A"), frame("B")]))

        assert partials == ["A", "AB"]
        assert aggregator.text == "AB"

    def test_malformed_frame_between_valid_frames(self):
        aggregator = StreamAggregator()

        partials = list(aggregator.iter_partials([frame("A"), "data: {oops\n", frame("B")]))

        assert partials == ["A", "AB"]
        assert aggregator.skipped_frames == 1

    def test_dashscope_event_blocks(self):
        body = (
            'id:1\nevent:result\n:HTTP_STATUS/200\ndata:{"output":{"text":"Hel","finish_reason":"null"}}\n\n'
            'id:2\nevent:result\n:HTTP_STATUS/200\ndata:{"output":{"text":"lo","finish_reason":"stop"}}\n\n'
        )

        assert aggregate([body.encode("utf-8")]) == "Hello"

    def test_frame_split_across_chunks(self):
        raw = (frame("Zora") + "\n\n").encode("utf-8")

        assert aggregate([raw[:10], raw[10:25], raw[25:]]) == "Zora"

    def test_multibyte_character_split_across_chunks(self):
        raw = (frame("é") + "\n").encode("utf-8")
        raw = raw.replace(b"\\u00e9", "é".encode("utf-8"))
        split_at = raw.index("é".encode("utf-8")) + 1

        assert aggregate([raw[:split_at], raw[split_at:]]) == "é"

    def test_unterminated_final_frame_is_flushed(self):
        aggregator = StreamAggregator()
        aggregator.feed(frame("A") + "\n")
        aggregator.feed('data: {"output": {"text": "B"')

        assert aggregator.text == "A"
        assert aggregator.finish() == "A"
        assert aggregator.skipped_frames == 1

    def test_empty_stream(self):
        assert aggregate([]) == ""

    def test_unterminated_frames_concatenate(self):
        def frames():
            yield frame("Half an ans")
            yield frame("wer")

        assert aggregate(frames()) == "Half an answer"

    def test_interrupted_stream_keeps_partial_text(self):
        aggregator = StreamAggregator()

        def dropped():
            yield frame("Half an ans") + "\n"
            raise ConnectionError("connection reset by peer")

        with pytest.raises(ConnectionError):
            for _ in aggregator.iter_partials(dropped()):
                pass

        assert aggregator.text == "Half an ans"

    def test_chunk_boundary_before_data_inside_json(self):
        raw = frame("see data: here") + "\n"
        split_at = raw.index("data: here")

        assert aggregate([raw[:split_at], raw[split_at:]]) == "see data: here"


class TestSentinels:

    def test_empty_text_becomes_signal_lost(self):
        assert finalize_answer("") == SIGNAL_LOST
        assert finalize_answer(None) == SIGNAL_LOST

    def test_text_passes_through(self):
        assert finalize_answer("Hello") == "Hello"

    def test_is_sentinel(self):
        assert is_sentinel(SIGNAL_LOST)
        assert is_sentinel(LINK_INTERRUPTED)
        assert not is_sentinel("signal lost")
