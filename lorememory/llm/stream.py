"""
Stream aggregation for incremental SSE completion output.

Each "data:" frame carries a small JSON object with a text delta. Deltas are
appended in arrival order; the growing transcript is observable after every
frame and the accumulated text stays available when the stream ends early.
"""

import codecs
import json
import logging
from typing import Iterable, Iterator, List, Optional, Union

from ..core.errors import StreamDecodeError
from .completion import extract_output_text

log = logging.getLogger(__name__)

# Sentinels are bracketed so they cannot be mistaken for model output
SIGNAL_LOST = "[ signal lost ]"
LINK_INTERRUPTED = "[ link interrupted ]"

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def decode_frame(line: str) -> Optional[str]:
    """
    Text delta of one SSE line.

    Returns None for lines that are not data frames (id:, event:, comments)
    and raises StreamDecodeError for data frames that are not valid JSON.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    body = line[len(DATA_PREFIX):].strip()
    if not body or body == DONE_MARKER:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(f"Malformed frame: {e}", payload=body)
    return extract_output_text(payload) or ""


class StreamAggregator:
    """Single-consumer, push-driven accumulator for one completion stream."""

    def __init__(self):
        self.text = ""
        self.frames = 0
        self.skipped_frames = 0
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Consume one chunk of the stream; returns the partial transcripts it produced."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        partials = []
        for line in lines:
            partial = self._consume_line(line.rstrip("\r"))
            if partial is not None:
                partials.append(partial)

        # A complete frame may arrive without its trailing newline
        if self._buffer.startswith(DATA_PREFIX) and self._is_complete(self._buffer):
            line, self._buffer = self._buffer, ""
            partial = self._consume_line(line.rstrip("\r"))
            if partial is not None:
                partials.append(partial)
        return partials

    def finish(self) -> str:
        """Flush any trailing frame and return the final accumulated text."""
        tail = self._decoder.decode(b"", final=True)
        remainder = (self._buffer + tail).rstrip("\r")
        self._buffer = ""
        if remainder:
            self._consume_line(remainder)
        return self.text

    def iter_partials(self, stream: Iterable[Union[bytes, str]]) -> Iterator[str]:
        """Read stream to exhaustion, yielding the growing transcript after each delta."""
        for chunk in stream:
            for partial in self.feed(chunk):
                yield partial
        before = self.text
        final = self.finish()
        if final != before:
            yield final

    def _consume_line(self, line: str) -> Optional[str]:
        try:
            delta = decode_frame(line)
        except StreamDecodeError as e:
            self.skipped_frames += 1
            log.debug("Skipping stream frame: %s", e.payload)
            return None
        if delta is None:
            return None
        self.frames += 1
        if not delta:
            return None
        self.text += delta
        return self.text

    @staticmethod
    def _is_complete(line: str) -> bool:
        try:
            json.loads(line[len(DATA_PREFIX):].strip())
        except json.JSONDecodeError:
            return False
        return True


def aggregate(stream: Iterable[Union[bytes, str]]) -> str:
    """Final text of a stream (possibly partial when it ended early)."""
    aggregator = StreamAggregator()
    for _ in aggregator.iter_partials(stream):
        pass
    return aggregator.text


def finalize_answer(text: Optional[str]) -> str:
    """Substitute the signal-lost sentinel for an empty transcript."""
    return text if text else SIGNAL_LOST


def is_sentinel(text: str) -> bool:
    return text in (SIGNAL_LOST, LINK_INTERRUPTED)
