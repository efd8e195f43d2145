"""Models package - re-exports for convenience."""

from backend.app.models.chat import ChatMessage, ChatRequest
from backend.app.models.docs import DocChunk, Document, DocumentStatus, RetrievalResult
from backend.app.models.intent import ClassifiedIntent, IntentCategory

__all__ = [
    # Documents
    "Document",
    "DocumentStatus",
    "DocChunk",
    "RetrievalResult",
    # Chat
    "ChatMessage",
    "ChatRequest",
    # Intent
    "ClassifiedIntent",
    "IntentCategory",
]
