"""Background ingestion worker.

The upload handler enqueues a job and answers immediately; the only
observable effect of a job is the document row mutation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from backend.app.docs.ingest import DocumentIngestor, IngestOutcome
from backend.app.models.docs import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestJob:
    """One (re)ingestion request for an ownership-checked document."""

    document: Document

    @property
    def document_id(self) -> UUID:
        return self.document.id


class IngestionWorker:
    """Runs ingestion jobs as tracked asyncio tasks.

    Concurrency is bounded by a semaphore and each job is bounded by a
    timeout after which the document is forced to ``error``. In ``inline``
    mode jobs run to completion inside ``submit``.
    """

    def __init__(
        self,
        ingestor: DocumentIngestor,
        *,
        mode: Literal["background", "inline"] = "background",
        max_concurrency: int = 4,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._ingestor = ingestor
        self._mode = mode
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._timeout_seconds = timeout_seconds
        self._tasks: set[asyncio.Task[IngestOutcome | None]] = set()

    @property
    def pending(self) -> int:
        """Number of jobs not yet finished."""
        return len(self._tasks)

    async def submit(self, job: IngestJob) -> None:
        """Schedule a job. Returns before it runs unless in inline mode."""
        if self._mode == "inline":
            await self._run(job)
            return

        task = asyncio.create_task(self._run(job), name=f"ingest-{job.document_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job: IngestJob) -> IngestOutcome | None:
        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    self._ingestor.ingest(job.document), timeout=self._timeout_seconds
                )
            except TimeoutError:
                await self._ingestor.mark_failed(
                    job.document_id, f"ingestion exceeded {self._timeout_seconds}s"
                )
            except Exception:
                logger.exception(f"Ingestion job crashed for document {job.document_id}")
            return None

    async def drain(self) -> None:
        """Wait for every scheduled job to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs. Their documents stay in ``processing``."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
