"""Repository protocol interfaces for data access."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.models.docs import DocChunk, Document, DocumentStatus


@dataclass
class NewDocument:
    """Metadata for a document row about to be created."""

    name: str
    file_type: str
    file_size: int
    storage_path: str


@dataclass
class ChunkWriteResult:
    """Outcome of a chunk replacement."""

    inserted: int
    failed_batches: int


class DocumentRepository(Protocol):
    """Repository for document metadata. All reads are owner-scoped."""

    async def create(self, doc: NewDocument, ctx: RequestContext) -> Document:
        """Create a document row in ``processing`` state."""
        ...

    async def get(self, document_id: UUID, ctx: RequestContext) -> Document | None:
        """Get document by id.

        Returns:
            Document, or None if unknown or owned by another user
        """
        ...

    async def list_for_user(
        self, ctx: RequestContext, status: DocumentStatus | None = None
    ) -> list[Document]:
        """List the caller's documents, newest first."""
        ...

    async def set_status(
        self,
        document_id: UUID,
        *,
        status: DocumentStatus,
        chunk_count: int | None = None,
    ) -> None:
        """Transition a document's status.

        Not owner-scoped: only the ingestion path calls this, after the
        owner check has already passed.
        """
        ...

    async def delete(self, document_id: UUID, ctx: RequestContext) -> bool:
        """Delete a document and its chunks.

        Returns:
            True if a row was deleted
        """
        ...


class ChunkStore(Protocol):
    """Chunk persistence. Backing store is swappable."""

    async def replace_chunks(
        self,
        document_id: UUID,
        user_id: UUID,
        contents: Sequence[str],
        *,
        batch_size: int,
    ) -> ChunkWriteResult:
        """Delete every chunk of the document, then insert ``contents`` in batches.

        ``contents[i]`` is stored with ``chunk_index = i``. A failing batch is
        logged and skipped.
        """
        ...

    async def list_chunks(
        self, document_ids: Sequence[UUID], *, limit: int
    ) -> list[DocChunk]:
        """Return up to ``limit`` chunks of the given documents in insertion order."""
        ...

    async def delete_chunks(self, document_id: UUID) -> None:
        """Delete every chunk of the document. Idempotent."""
        ...


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
