"""Service container - wires collaborators from settings."""

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.adapters.storage import (
    HTTPObjectStorage,
    InMemoryObjectStorage,
    LocalObjectStorage,
    ObjectStorage,
)
from backend.app.api.auth import HTTPTokenResolver, StubTokenResolver, TokenResolver
from backend.app.config import Settings
from backend.app.db.engine import create_async_engine_from_settings, create_session_factory
from backend.app.db.inmemory import (
    InMemoryChunkStore,
    InMemoryDocumentRepository,
    InMemoryRateLimiter,
)
from backend.app.db.repositories import ChunkStore, DocumentRepository, RateLimiter
from backend.app.db.sql_repositories import SqlChunkStore, SqlDocumentRepository
from backend.app.docs.ingest import DocumentIngestor
from backend.app.docs.retriever import LexicalRetriever
from backend.app.docs.worker import IngestionWorker
from backend.app.llm.client import CompletionClient, OpenAICompletionClient, get_completion_client
from backend.app.llm.intent import IntentClassifier
from backend.app.ratelimit import RedisRateLimiter, create_redis_client

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""

    settings: Settings
    documents: DocumentRepository
    chunks: ChunkStore
    storage: ObjectStorage
    completion: CompletionClient
    token_resolver: TokenResolver
    retriever: LexicalRetriever
    classifier: IntentClassifier
    ingestor: DocumentIngestor
    worker: IngestionWorker
    rate_limiters: dict[str, RateLimiter]
    engine: AsyncEngine | None = None
    redis_client: Any = None
    closeables: list[Any] = field(default_factory=list)

    async def aclose(self) -> None:
        """Stop background work and release connections."""
        await self.worker.shutdown()
        for resource in self.closeables:
            await resource.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def assemble_services(
    settings: Settings,
    *,
    documents: DocumentRepository,
    chunks: ChunkStore,
    storage: ObjectStorage,
    completion: CompletionClient,
    token_resolver: TokenResolver,
    rate_limiters: dict[str, RateLimiter] | None = None,
) -> Services:
    """Derive the core components from the given collaborators."""
    ingestor = DocumentIngestor.from_settings(settings, documents, chunks, storage)
    worker = IngestionWorker(
        ingestor,
        mode=settings.ingest_mode,
        max_concurrency=settings.ingest_max_concurrency,
        timeout_seconds=settings.ingest_timeout_seconds,
    )
    retriever = LexicalRetriever(
        documents,
        chunks,
        top_k=settings.retrieval_top_k,
        scan_limit=settings.retrieval_chunk_scan_limit,
        min_token_length=settings.retrieval_min_token_length,
    )
    if rate_limiters is None:
        rate_limiters = {
            "chat": InMemoryRateLimiter(max_requests=settings.chat_requests_per_min),
            "documents": InMemoryRateLimiter(max_requests=settings.document_requests_per_min),
        }

    return Services(
        settings=settings,
        documents=documents,
        chunks=chunks,
        storage=storage,
        completion=completion,
        token_resolver=token_resolver,
        retriever=retriever,
        classifier=IntentClassifier(completion, model=settings.llm_classifier_model),
        ingestor=ingestor,
        worker=worker,
        rate_limiters=rate_limiters,
    )


def build_services(settings: Settings) -> Services:
    """Build production collaborators from settings.

    Falls back to in-process implementations for anything not configured.
    """
    closeables: list[Any] = []

    engine: AsyncEngine | None = None
    documents: DocumentRepository
    chunks: ChunkStore
    if settings.database_url:
        engine = create_async_engine_from_settings(settings)
        session_factory = create_session_factory(engine)
        documents = SqlDocumentRepository(session_factory)
        chunks = SqlChunkStore(session_factory)
    else:
        logger.warning("DATABASE_URL not set, documents are kept in memory")
        documents = InMemoryDocumentRepository()
        chunks = InMemoryChunkStore()

    storage: ObjectStorage
    if settings.storage_url:
        api_key = settings.storage_api_key.get_secret_value() if settings.storage_api_key else None
        http_storage = HTTPObjectStorage(settings.storage_url, settings.storage_bucket, api_key)
        closeables.append(http_storage)
        storage = http_storage
    elif settings.storage_local_root:
        storage = LocalObjectStorage(settings.storage_local_root)
    else:
        storage = InMemoryObjectStorage()

    token_resolver: TokenResolver
    if settings.auth_url:
        api_key = settings.auth_api_key.get_secret_value() if settings.auth_api_key else None
        http_resolver = HTTPTokenResolver(settings.auth_url, api_key)
        closeables.append(http_resolver)
        token_resolver = http_resolver
    else:
        logger.warning("No auth service configured, accepting user-id bearer tokens")
        token_resolver = StubTokenResolver()

    redis_client = None
    rate_limiters: dict[str, RateLimiter] | None = None
    if settings.redis_url:
        redis_client = create_redis_client(settings)
        rate_limiters = {
            "chat": RedisRateLimiter(redis_client, settings.chat_requests_per_min),
            "documents": RedisRateLimiter(redis_client, settings.document_requests_per_min),
        }

    completion = get_completion_client(settings)
    if isinstance(completion, OpenAICompletionClient):
        closeables.append(completion)

    services = assemble_services(
        settings,
        documents=documents,
        chunks=chunks,
        storage=storage,
        completion=completion,
        token_resolver=token_resolver,
        rate_limiters=rate_limiters,
    )
    services.engine = engine
    services.redis_client = redis_client
    services.closeables = closeables
    return services


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the application's services."""
    services: Services = request.app.state.services
    return services
