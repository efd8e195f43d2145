"""In-memory implementations of repository interfaces."""

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from backend.app.db.context import RequestContext
from backend.app.db.repositories import ChunkWriteResult, NewDocument, RetryAfter
from backend.app.errors import TransientStoreFailure
from backend.app.models.docs import DocChunk, Document, DocumentStatus

logger = logging.getLogger(__name__)


class InMemoryDocumentRepository:
    """In-memory implementation of DocumentRepository."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, Document] = {}

    async def create(self, doc: NewDocument, ctx: RequestContext) -> Document:
        """Create a document row in processing state."""
        now = datetime.now(UTC)
        document = Document(
            id=uuid.uuid4(),
            user_id=ctx.user_id,
            name=doc.name,
            file_type=doc.file_type,
            file_size=doc.file_size,
            storage_path=doc.storage_path,
            status=DocumentStatus.processing,
            chunk_count=None,
            created_at=now,
            updated_at=now,
        )
        self._documents[document.id] = document
        return document

    async def get(self, document_id: uuid.UUID, ctx: RequestContext) -> Document | None:
        """Get document by id, scoped to the caller."""
        document = self._documents.get(document_id)

        if document is None or document.user_id != ctx.user_id:
            return None

        return document

    async def list_for_user(
        self, ctx: RequestContext, status: DocumentStatus | None = None
    ) -> list[Document]:
        """List the caller's documents, newest first."""
        results = [
            d
            for d in self._documents.values()
            if d.user_id == ctx.user_id and (status is None or d.status == status)
        ]
        results.sort(key=lambda d: d.created_at, reverse=True)
        return results

    async def set_status(
        self,
        document_id: uuid.UUID,
        *,
        status: DocumentStatus,
        chunk_count: int | None = None,
    ) -> None:
        """Transition a document's status."""
        document = self._documents.get(document_id)
        if document is None:
            return

        self._documents[document_id] = document.model_copy(
            update={
                "status": status,
                "chunk_count": chunk_count,
                "updated_at": datetime.now(UTC),
            }
        )

    async def delete(self, document_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete a document row. Chunks are owned by the chunk store."""
        if await self.get(document_id, ctx) is None:
            return False

        del self._documents[document_id]
        return True


class InMemoryChunkStore:
    """In-memory implementation of ChunkStore.

    Chunks live in one list so that list order is insertion order.
    """

    def __init__(self) -> None:
        self._chunks: list[tuple[uuid.UUID, DocChunk]] = []

    async def replace_chunks(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        contents: Sequence[str],
        *,
        batch_size: int,
    ) -> ChunkWriteResult:
        """Delete then insert in batches; failing batches are skipped."""
        await self.delete_chunks(document_id)

        inserted = 0
        failed_batches = 0
        for start in range(0, len(contents), batch_size):
            batch = [
                DocChunk(document_id=document_id, chunk_index=index, content=content)
                for index, content in enumerate(contents[start : start + batch_size], start=start)
            ]
            try:
                self._insert_batch(user_id, batch)
            except TransientStoreFailure as e:
                failed_batches += 1
                logger.error(f"Chunk batch insert failed for document {document_id}: {e}")
                continue
            inserted += len(batch)

        return ChunkWriteResult(inserted=inserted, failed_batches=failed_batches)

    def _insert_batch(self, user_id: uuid.UUID, batch: list[DocChunk]) -> None:
        self._chunks.extend((user_id, chunk) for chunk in batch)

    async def list_chunks(
        self, document_ids: Sequence[uuid.UUID], *, limit: int
    ) -> list[DocChunk]:
        """Return up to limit chunks in insertion order."""
        wanted = set(document_ids)
        return [chunk for _, chunk in self._chunks if chunk.document_id in wanted][:limit]

    async def delete_chunks(self, document_id: uuid.UUID) -> None:
        """Delete every chunk of the document."""
        self._chunks = [(u, c) for u, c in self._chunks if c.document_id != document_id]


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        if key not in self._windows:
            self._windows[key] = (now, 1)
            return None

        window_start, count = self._windows[key]
        window_end = window_start + timedelta(seconds=self._window_seconds)

        if now >= window_end:
            self._windows[key] = (now, 1)
            return None

        if count >= self._max_requests:
            seconds_remaining = int((window_end - now).total_seconds())
            return RetryAfter(seconds=max(1, seconds_remaining))

        self._windows[key] = (window_start, count + 1)
        return None
