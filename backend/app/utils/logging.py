"""Structured logging for document ingestion."""

import logging
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at application start."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


class StructuredIngestLogger:
    """Structured logger for ingestion attempts."""

    def log_attempt(
        self,
        *,
        document_id: UUID,
        user_id: UUID,
        outcome: str,
        latency_ms: float,
        chunk_count: int | None = None,
        text_length: int | None = None,
        error_reason: str | None = None,
    ) -> None:
        """Log one ingestion attempt with structured data."""
        log_data: dict[str, Any] = {
            "document_id": str(document_id),
            "user_id": str(user_id),
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if chunk_count is not None:
            log_data["chunk_count"] = chunk_count
        if text_length is not None:
            log_data["text_length"] = text_length
        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Document ingestion: {document_id} - {outcome}"

        if outcome == "processed":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
