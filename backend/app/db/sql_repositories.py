"""SQL implementations of repository interfaces."""

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.context import RequestContext
from backend.app.db.models import Document as DocumentDB
from backend.app.db.models import DocumentChunk as DocumentChunkDB
from backend.app.db.repositories import ChunkWriteResult, NewDocument
from backend.app.models.docs import DocChunk, Document, DocumentStatus

logger = logging.getLogger(__name__)


def _to_domain(row: DocumentDB) -> Document:
    return Document(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        file_type=row.file_type,
        file_size=row.file_size,
        storage_path=row.storage_path,
        status=DocumentStatus(row.status),
        chunk_count=row.chunk_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlDocumentRepository:
    """SQL implementation of DocumentRepository.

    Opens one session per operation so it is safe to share between
    request handlers and background ingestion tasks.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, doc: NewDocument, ctx: RequestContext) -> Document:
        """Create a document row in processing state."""
        now = datetime.now(UTC)
        row = DocumentDB(
            id=uuid.uuid4(),
            user_id=ctx.user_id,
            name=doc.name,
            file_type=doc.file_type,
            file_size=doc.file_size,
            storage_path=doc.storage_path,
            status=DocumentStatus.processing.value,
            chunk_count=None,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
            return _to_domain(row)

    async def get(self, document_id: uuid.UUID, ctx: RequestContext) -> Document | None:
        """Get document by id, scoped to the caller."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentDB).where(
                    DocumentDB.id == document_id,
                    DocumentDB.user_id == ctx.user_id,
                )
            )
            row = result.scalar_one_or_none()
            return _to_domain(row) if row is not None else None

    async def list_for_user(
        self, ctx: RequestContext, status: DocumentStatus | None = None
    ) -> list[Document]:
        """List the caller's documents, newest first."""
        query = select(DocumentDB).where(DocumentDB.user_id == ctx.user_id)
        if status is not None:
            query = query.where(DocumentDB.status == status.value)
        query = query.order_by(DocumentDB.created_at.desc())

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_to_domain(row) for row in result.scalars().all()]

    async def set_status(
        self,
        document_id: uuid.UUID,
        *,
        status: DocumentStatus,
        chunk_count: int | None = None,
    ) -> None:
        """Transition a document's status."""
        async with self._session_factory() as session:
            await session.execute(
                update(DocumentDB)
                .where(DocumentDB.id == document_id)
                .values(
                    status=status.value,
                    chunk_count=chunk_count,
                    updated_at=datetime.now(UTC),
                )
            )
            await session.commit()

    async def delete(self, document_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete a document and its chunks."""
        async with self._session_factory() as session:
            async with session.begin():
                owned = await session.execute(
                    select(DocumentDB.id).where(
                        DocumentDB.id == document_id,
                        DocumentDB.user_id == ctx.user_id,
                    )
                )
                if owned.scalar_one_or_none() is None:
                    return False

                # Explicit chunk delete; not every backend enforces ON DELETE CASCADE
                await session.execute(
                    delete(DocumentChunkDB).where(DocumentChunkDB.document_id == document_id)
                )
                await session.execute(delete(DocumentDB).where(DocumentDB.id == document_id))
            return True


class SqlChunkStore:
    """SQL implementation of ChunkStore."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def replace_chunks(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        contents: Sequence[str],
        *,
        batch_size: int,
    ) -> ChunkWriteResult:
        """Delete then insert in one transaction, one SAVEPOINT per batch."""
        inserted = 0
        failed_batches = 0

        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(DocumentChunkDB).where(DocumentChunkDB.document_id == document_id)
                )

                for start in range(0, len(contents), batch_size):
                    rows = [
                        {
                            "document_id": document_id,
                            "user_id": user_id,
                            "chunk_index": index,
                            "content": content,
                            "created_at": datetime.now(UTC),
                        }
                        for index, content in enumerate(
                            contents[start : start + batch_size], start=start
                        )
                    ]
                    try:
                        async with session.begin_nested():
                            await session.execute(insert(DocumentChunkDB), rows)
                    except SQLAlchemyError as e:
                        failed_batches += 1
                        logger.error(
                            f"Chunk batch insert failed for document {document_id} "
                            f"(chunks {start}-{start + len(rows) - 1}): {e}"
                        )
                        continue
                    inserted += len(rows)

        return ChunkWriteResult(inserted=inserted, failed_batches=failed_batches)

    async def list_chunks(
        self, document_ids: Sequence[uuid.UUID], *, limit: int
    ) -> list[DocChunk]:
        """Return up to limit chunks in insertion order."""
        if not document_ids:
            return []

        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentChunkDB)
                .where(DocumentChunkDB.document_id.in_(list(document_ids)))
                .order_by(DocumentChunkDB.id)
                .limit(limit)
            )
            return [
                DocChunk(
                    document_id=row.document_id,
                    chunk_index=row.chunk_index,
                    content=row.content,
                )
                for row in result.scalars().all()
            ]

    async def delete_chunks(self, document_id: uuid.UUID) -> None:
        """Delete every chunk of the document."""
        async with self._session_factory() as session:
            await session.execute(
                delete(DocumentChunkDB).where(DocumentChunkDB.document_id == document_id)
            )
            await session.commit()
