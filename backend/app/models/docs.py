"""Document domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentStatus(str, Enum):
    """Ingestion lifecycle of a document."""

    processing = "processing"
    processed = "processed"
    error = "error"


class Document(BaseModel):
    """Uploaded document metadata. Visible only to its owner."""

    id: UUID
    user_id: UUID
    name: str
    file_type: str
    file_size: int = Field(..., ge=0)
    storage_path: str
    status: DocumentStatus = DocumentStatus.processing
    chunk_count: int | None = None
    created_at: datetime
    updated_at: datetime


class DocChunk(BaseModel):
    """Contiguous slice of a document's extracted text."""

    document_id: UUID
    chunk_index: int = Field(..., ge=0)  # 0-based, contiguous per document
    content: str


class RetrievalResult(BaseModel):
    """Chunk matched against a query. Ephemeral, never persisted."""

    content: str
    document_name: str
    document_id: UUID
    chunk_index: int
    score: float
