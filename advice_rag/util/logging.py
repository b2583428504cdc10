"""
Structured logging for index builds, searches and the generation pipeline.
"""

import logging
from typing import Any, Dict, Optional


def _truncate(text: Optional[str], limit: int = 50) -> Optional[str]:
    if text is None:
        return None
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for index, search, pipeline and storage operations."""

    def __init__(self, name: str = "advice_rag"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("invalid", "timeout", "waiting"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_index_event(self, event: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a vector index lifecycle event (build, lock, load)."""
        self.log_operation(f"index.{event}", status, details)

    def log_cache_event(self, event: str, path: str, status: str = "success", reason: str = None):
        """Log a cache manifest event."""
        details = {"path": path}
        if reason:
            details["reason"] = reason[:100]
        self.log_operation(f"cache.{event}", status, details)

    def log_search(self, query: str, candidates: int, matched: int, threshold: float, duration_ms: float):
        """Log a semantic search."""
        details = {
            "query": _truncate(query),
            "candidates": candidates,
            "matched": matched,
            "threshold": threshold,
            "duration_ms": round(duration_ms, 2),
        }
        self.log_operation("search.semantic", "success", details)

    def log_pipeline_stage(self, message_id: Any, state: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a generation pipeline state transition."""
        log_details = {"message_id": message_id, "state": state}
        if details:
            log_details.update(details)
        self.log_operation("pipeline.stage", status, log_details)

    def log_stream_event(self, message_id: Any, event: str, details: Dict[str, Any] = None):
        """Log a stream transport event."""
        log_details = {"message_id": message_id}
        if details:
            log_details.update(details)
        self.log_operation(f"stream.{event}", "success", log_details)

    def log_message_event(self, action: str, message_id: Any, query: str = None, status: str = "success"):
        """Log a message store mutation."""
        details = {"message_id": message_id}
        if query is not None:
            details["query"] = _truncate(query)
        self.log_operation(f"message.{action}", status, details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
