"""
Chat-completion client for the DashScope text-generation API.
Supports incremental SSE streaming and single-response calls.
"""

from typing import Any, Dict, Iterator, List, Optional

import requests

from ..core.errors import CompletionError
from ..util.logging import logger


class CompletionClient:
    """Thin client over the text-generation endpoint."""

    ENDPOINT = "/services/aigc/text-generation/generation"

    def __init__(self, api_key: str, model: str = "qwen-turbo",
                 base_url: str = "https://dashscope.aliyuncs.com/api/v1",
                 timeout: float = 60.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.url = base_url.rstrip("/") + self.ENDPOINT
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, stream: bool) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["X-DashScope-SSE"] = "enable"
        return headers

    def complete(self, messages: List[Dict[str, str]]) -> str:
        """Non-streaming call; returns the model's full text."""
        payload = {"model": self.model, "input": {"messages": messages}}
        try:
            response = self.session.post(self.url, json=payload, headers=self._headers(False),
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise CompletionError(f"Completion request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            raise CompletionError(
                f"Completion failed: non-JSON response (HTTP {response.status_code})",
                payload=response.text,
            )

        text = extract_output_text(data)
        if text is None:
            raise CompletionError("Completion returned no text", payload=data)
        logger.debug(f"completion model={self.model} chars={len(text)}")
        return text

    def stream(self, messages: List[Dict[str, str]]) -> Iterator[bytes]:
        """
        Streaming call with incremental output.

        Yields raw byte chunks of the SSE body as they arrive; the response is
        closed when the caller stops iterating.
        """
        payload = {
            "model": self.model,
            "input": {"messages": messages},
            "parameters": {"incremental_output": True},
        }
        try:
            response = self.session.post(self.url, json=payload, headers=self._headers(True),
                                         timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            raise CompletionError(f"Streaming request failed: {e}") from e

        if response.status_code >= 400:
            body = response.text
            response.close()
            raise CompletionError(f"Streaming request rejected (HTTP {response.status_code})",
                                  payload=body)

        return self._iter_body(response)

    @staticmethod
    def _iter_body(response: requests.Response) -> Iterator[bytes]:
        try:
            for chunk in response.iter_content(chunk_size=None):
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            # Abrupt end: whatever arrived so far is still a valid partial answer
            logger.warning(f"Completion stream ended early: {e}")
        finally:
            response.close()


def extract_output_text(data: Any) -> Optional[str]:
    """Text of a completion payload (DashScope output.text or OpenAI-style choices)."""
    if not isinstance(data, dict):
        return None
    output = data.get("output")
    if isinstance(output, dict):
        text = output.get("text")
        if isinstance(text, str):
            return text
        data = output
    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0] if isinstance(choices[0], dict) else {}
        for key in ("message", "delta"):
            part = first.get(key)
            if isinstance(part, dict) and isinstance(part.get("content"), str):
                return part["content"]
    return None
