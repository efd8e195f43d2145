"""Integration tests for SQL repositories on SQLite (aiosqlite)."""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.adapters.storage import InMemoryObjectStorage
from backend.app.db.context import RequestContext
from backend.app.db.models import DocumentChunk as DocumentChunkDB
from backend.app.db.repositories import NewDocument
from backend.app.db.sql_repositories import SqlChunkStore, SqlDocumentRepository
from backend.app.docs.ingest import DocumentIngestor
from backend.app.models.docs import DocumentStatus


def _new(name: str = "report.txt") -> NewDocument:
    return NewDocument(name=name, file_type="text/plain", file_size=42, storage_path=f"u/{name}")


@pytest.mark.asyncio
async def test_create_and_get_is_owner_scoped(
    session_factory: async_sessionmaker[AsyncSession],
    ctx: RequestContext,
    other_ctx: RequestContext,
) -> None:
    repo = SqlDocumentRepository(session_factory)

    doc = await repo.create(_new(), ctx)

    assert doc.status == DocumentStatus.processing
    assert doc.chunk_count is None
    fetched = await repo.get(doc.id, ctx)
    assert fetched is not None
    assert fetched.name == "report.txt"
    assert fetched.user_id == ctx.user_id
    assert await repo.get(doc.id, other_ctx) is None


@pytest.mark.asyncio
async def test_list_is_newest_first_and_filterable(
    session_factory: async_sessionmaker[AsyncSession],
    ctx: RequestContext,
    other_ctx: RequestContext,
) -> None:
    repo = SqlDocumentRepository(session_factory)
    first = await repo.create(_new("first.txt"), ctx)
    await asyncio.sleep(0.01)
    second = await repo.create(_new("second.txt"), ctx)
    await repo.create(_new("theirs.txt"), other_ctx)
    await repo.set_status(first.id, status=DocumentStatus.processed, chunk_count=2)

    all_docs = await repo.list_for_user(ctx)
    processed = await repo.list_for_user(ctx, status=DocumentStatus.processed)

    assert [d.id for d in all_docs] == [second.id, first.id]
    assert [d.id for d in processed] == [first.id]
    assert processed[0].chunk_count == 2


@pytest.mark.asyncio
async def test_replace_chunks_replaces_previous_set(
    session_factory: async_sessionmaker[AsyncSession], ctx: RequestContext
) -> None:
    repo = SqlDocumentRepository(session_factory)
    store = SqlChunkStore(session_factory)
    doc = await repo.create(_new(), ctx)

    await store.replace_chunks(doc.id, ctx.user_id, ["a", "b", "c"], batch_size=2)
    result = await store.replace_chunks(doc.id, ctx.user_id, ["x", "y"], batch_size=2)

    assert result.inserted == 2
    assert result.failed_batches == 0
    stored = await store.list_chunks([doc.id], limit=100)
    assert [(c.chunk_index, c.content) for c in stored] == [(0, "x"), (1, "y")]


@pytest.mark.asyncio
async def test_failing_batch_is_rolled_back_alone(
    session_factory: async_sessionmaker[AsyncSession], ctx: RequestContext
) -> None:
    """A constraint violation discards only its own batch."""
    repo = SqlDocumentRepository(session_factory)
    store = SqlChunkStore(session_factory)
    doc = await repo.create(_new(), ctx)

    contents = ["a", "b", None, "d", "e"]
    result = await store.replace_chunks(doc.id, ctx.user_id, contents, batch_size=2)  # type: ignore[arg-type]

    assert result.inserted == 3
    assert result.failed_batches == 1
    stored = await store.list_chunks([doc.id], limit=100)
    assert [c.chunk_index for c in stored] == [0, 1, 4]


@pytest.mark.asyncio
async def test_list_chunks_respects_limit_and_insertion_order(
    session_factory: async_sessionmaker[AsyncSession], ctx: RequestContext
) -> None:
    repo = SqlDocumentRepository(session_factory)
    store = SqlChunkStore(session_factory)
    doc_a = await repo.create(_new("a.txt"), ctx)
    doc_b = await repo.create(_new("b.txt"), ctx)
    await store.replace_chunks(doc_a.id, ctx.user_id, ["a0", "a1"], batch_size=10)
    await store.replace_chunks(doc_b.id, ctx.user_id, ["b0", "b1"], batch_size=10)

    stored = await store.list_chunks([doc_b.id, doc_a.id], limit=3)

    assert [c.content for c in stored] == ["a0", "a1", "b0"]
    assert await store.list_chunks([], limit=3) == []


@pytest.mark.asyncio
async def test_delete_removes_document_and_chunks(
    session_factory: async_sessionmaker[AsyncSession],
    ctx: RequestContext,
    other_ctx: RequestContext,
) -> None:
    repo = SqlDocumentRepository(session_factory)
    store = SqlChunkStore(session_factory)
    doc = await repo.create(_new(), ctx)
    await store.replace_chunks(doc.id, ctx.user_id, ["a", "b"], batch_size=10)

    assert await repo.delete(doc.id, other_ctx) is False
    assert await repo.delete(doc.id, ctx) is True

    assert await repo.get(doc.id, ctx) is None
    async with session_factory() as session:
        remaining = await session.scalar(select(func.count()).select_from(DocumentChunkDB))
    assert remaining == 0


@pytest.mark.asyncio
async def test_full_ingestion_on_sql(
    session_factory: async_sessionmaker[AsyncSession], ctx: RequestContext
) -> None:
    documents = SqlDocumentRepository(session_factory)
    chunks = SqlChunkStore(session_factory)
    storage = InMemoryObjectStorage()
    path = f"{ctx.user_id}/{uuid.uuid4()}.txt"
    await storage.upload(path, b"q" * 2500, "text/plain")
    doc = await documents.create(
        NewDocument(name="q.txt", file_type="text/plain", file_size=2500, storage_path=path), ctx
    )
    ingestor = DocumentIngestor(
        documents,
        chunks,
        storage,
        max_input_bytes=500_000,
        max_output_chars=50_000,
        chunk_size=1000,
        chunk_overlap=200,
        max_chunks=500,
        batch_size=100,
    )

    await ingestor.ingest(doc)
    await ingestor.ingest(doc)

    current = await documents.get(doc.id, ctx)
    assert current is not None
    assert current.status == DocumentStatus.processed
    assert current.chunk_count == 3
    assert len(await chunks.list_chunks([doc.id], limit=100)) == 3
