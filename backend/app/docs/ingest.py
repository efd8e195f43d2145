"""Document ingestion - download, extract, chunk, persist, update status."""

import logging
import time
from dataclasses import dataclass
from uuid import UUID

from backend.app.adapters.storage import ObjectStorage
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import ChunkStore, DocumentRepository
from backend.app.docs.chunker import chunk_text
from backend.app.docs.extractor import extract_text
from backend.app.errors import ExtractionFailure, NotFoundError, StorageError
from backend.app.models.docs import Document, DocumentStatus
from backend.app.utils.logging import StructuredIngestLogger
from backend.app.utils.metrics import PrometheusIngestMetrics

logger = logging.getLogger(__name__)


@dataclass
class IngestOutcome:
    """Result of one ingestion attempt."""

    document_id: UUID
    status: DocumentStatus
    chunk_count: int
    text_length: int = 0
    failed_batches: int = 0
    error_reason: str | None = None


class DocumentIngestor:
    """Runs the ingestion pipeline for one document at a time.

    State machine: processing -> processed | error. Every failure after the
    ownership check is absorbed into the document status; callers only ever
    see NotFoundError.

    Concurrent ingestions of the same document are not serialized. Chunk
    replacement is transactional where the store supports it, so the last
    writer's chunk set wins intact.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        chunks: ChunkStore,
        storage: ObjectStorage,
        *,
        max_input_bytes: int,
        max_output_chars: int,
        chunk_size: int,
        chunk_overlap: int,
        max_chunks: int,
        batch_size: int,
    ) -> None:
        self._documents = documents
        self._chunks = chunks
        self._storage = storage
        self._max_input_bytes = max_input_bytes
        self._max_output_chars = max_output_chars
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._max_chunks = max_chunks
        self._batch_size = batch_size
        self._metrics = PrometheusIngestMetrics()
        self._log = StructuredIngestLogger()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        documents: DocumentRepository,
        chunks: ChunkStore,
        storage: ObjectStorage,
    ) -> "DocumentIngestor":
        """Build an ingestor using the configured policy knobs."""
        return cls(
            documents,
            chunks,
            storage,
            max_input_bytes=settings.extract_max_input_bytes,
            max_output_chars=settings.extract_max_output_chars,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            max_chunks=settings.max_chunks_per_document,
            batch_size=settings.chunk_insert_batch_size,
        )

    async def load(self, document_id: UUID, ctx: RequestContext) -> Document:
        """Load a document owned by the caller.

        Raises:
            NotFoundError: If the document is unknown or owned by someone else
        """
        document = await self._documents.get(document_id, ctx)
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def ingest_by_id(self, document_id: UUID, ctx: RequestContext) -> IngestOutcome:
        """Ownership check, then the full pipeline."""
        document = await self.load(document_id, ctx)
        return await self.ingest(document)

    async def ingest(self, document: Document) -> IngestOutcome:
        """Run download -> extract -> chunk -> persist -> status update.

        Args:
            document: Document already checked for ownership

        Returns:
            IngestOutcome describing the terminal status written
        """
        started = time.monotonic()
        try:
            outcome = await self._run_pipeline(document)
        except Exception as e:
            logger.exception(f"Unexpected ingestion failure for document {document.id}")
            outcome = await self._fail(document.id, f"unexpected: {e}", chunk_count=None)

        latency_ms = (time.monotonic() - started) * 1000
        self._metrics.record_outcome(outcome.status.value, latency_ms)
        self._metrics.inc_batch_failures(outcome.failed_batches)
        self._log.log_attempt(
            document_id=document.id,
            user_id=document.user_id,
            outcome=outcome.status.value,
            latency_ms=latency_ms,
            chunk_count=outcome.chunk_count,
            text_length=outcome.text_length,
            error_reason=outcome.error_reason,
        )
        return outcome

    async def _run_pipeline(self, document: Document) -> IngestOutcome:
        logger.info(f"Processing document: {document.name} ({document.file_type})")

        try:
            data = await self._storage.download(document.storage_path)
        except StorageError as e:
            return await self._fail(document.id, f"download: {e}", chunk_count=None)

        try:
            text = self._extract(data, document.file_type)
        except ExtractionFailure as e:
            return await self._fail(document.id, str(e), chunk_count=0)

        contents = chunk_text(
            text,
            size=self._chunk_size,
            overlap=self._chunk_overlap,
            max_chunks=self._max_chunks,
        )
        logger.info(f"Created {len(contents)} chunks from {len(text)} characters")

        result = await self._chunks.replace_chunks(
            document.id,
            document.user_id,
            contents,
            batch_size=self._batch_size,
        )
        if await self._documents.get(document.id, RequestContext(user_id=document.user_id)) is None:
            # Deleted mid-ingestion; the delete route may already have cleared chunks
            await self._chunks.delete_chunks(document.id)
            logger.info(f"Document {document.id} was deleted during ingestion, chunks discarded")
            return IngestOutcome(
                document_id=document.id,
                status=DocumentStatus.error,
                chunk_count=0,
                text_length=len(text),
                error_reason="deleted during ingestion",
            )

        if result.failed_batches:
            logger.warning(
                f"Document {document.id}: {result.failed_batches} chunk batch(es) skipped, "
                f"{result.inserted}/{len(contents)} chunks stored"
            )

        await self._documents.set_status(
            document.id, status=DocumentStatus.processed, chunk_count=len(contents)
        )
        return IngestOutcome(
            document_id=document.id,
            status=DocumentStatus.processed,
            chunk_count=len(contents),
            text_length=len(text),
            failed_batches=result.failed_batches,
        )

    def _extract(self, data: bytes, media_type: str) -> str:
        text = extract_text(
            data,
            media_type,
            max_input_bytes=self._max_input_bytes,
            max_output_chars=self._max_output_chars,
        )
        if not text.strip():
            raise ExtractionFailure("Could not extract text from file")
        return text

    async def _fail(
        self, document_id: UUID, reason: str, *, chunk_count: int | None
    ) -> IngestOutcome:
        await self._documents.set_status(
            document_id, status=DocumentStatus.error, chunk_count=chunk_count
        )
        return IngestOutcome(
            document_id=document_id,
            status=DocumentStatus.error,
            chunk_count=chunk_count or 0,
            error_reason=reason,
        )

    async def mark_failed(self, document_id: UUID, reason: str) -> None:
        """Force a document into error state (used on worker timeout)."""
        logger.warning(f"Forcing document {document_id} to error: {reason}")
        await self._documents.set_status(document_id, status=DocumentStatus.error, chunk_count=0)
