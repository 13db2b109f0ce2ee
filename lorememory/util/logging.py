"""
Structured logging for the persona memory service.
Ingestion, retrieval and turn side effects all report through one logger.
"""

import logging
import os
from typing import Any, Dict, Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_STATUS_LEVELS = {
    "failed": logging.ERROR,
    "error": logging.ERROR,
    "degraded": logging.WARNING,
    "skipped": logging.WARNING,
}


class StructuredLogger:
    """Structured logger for embedding, vector, retrieval and turn operations."""

    def __init__(self, name: str = "lorememory", level: Optional[int] = None):
        self.logger = logging.getLogger(name)
        if level is None:
            level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
        self.logger.setLevel(level)

        # Attach a stream handler once per process
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(os.getenv("LOG_FORMAT", DEFAULT_FORMAT)))
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log one operation outcome; the level follows the status."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"
        self.logger.log(_STATUS_LEVELS.get(status, logging.INFO), message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector store write or query."""
        log_details = {"record_id": record_id, **(details or {})}
        self.log_operation(f"vector.{operation}", status, log_details)

    def log_embedding_call(self, model: str, text_length: int, status: str = "success", details: Dict[str, Any] = None):
        """Log a single embedding request."""
        log_details = {"model": model, "text_length": text_length, **(details or {})}
        self.log_operation("embedding.embed", status, log_details)

    def log_ingestion(self, source_id: str, chunk_count: int, written: int, status: str = "success", details: Dict[str, Any] = None):
        """Log an archive ingestion run."""
        log_details = {
            "source_id": source_id,
            "chunk_count": chunk_count,
            "written": written,
            **(details or {}),
        }
        self.log_operation("archive.ingest", status, log_details)

    def log_retrieval(self, persona_id: str, archive_hits: int, history_hits: int):
        """Log what the composer found for one query."""
        self.log_operation("retrieval.compose", "success", {
            "persona_id": persona_id,
            "archive_hits": archive_hits,
            "history_hits": history_hits,
        })

    def log_side_effect(self, name: str, turn_id: str, persona_id: str, status: str = "success", error: str = None):
        """Log a fire-and-forget turn side effect (memory write, consistency check)."""
        log_details = {"turn_id": turn_id, "persona_id": persona_id}
        if error:
            log_details["error"] = error[:200]
        self.log_operation(f"turn.{name}", status, log_details)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)


logger = StructuredLogger()


def truncate(text: Optional[str], limit: int = 50) -> str:
    """Shorten free text for log lines."""
    if text is None:
        return ""
    return text[:limit] + "..." if len(text) > limit else text
