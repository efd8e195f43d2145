"""Lexical retriever - score persisted chunks against a query."""

import logging
from collections.abc import Sequence

from backend.app.db.context import RequestContext
from backend.app.db.repositories import ChunkStore, DocumentRepository
from backend.app.models.docs import DocChunk, Document, DocumentStatus, RetrievalResult
from backend.app.utils.metrics import retrieval_matches

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_SCAN_LIMIT = 100
DEFAULT_MIN_TOKEN_LENGTH = 4


def tokenize_query(query: str, *, min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH) -> list[str]:
    """Lowercase, split on whitespace, drop tokens shorter than min_token_length."""
    return [token for token in query.lower().split() if len(token) >= min_token_length]


def score_chunk(tokens: Sequence[str], content: str) -> int:
    """Count query tokens appearing as substrings of the lowercased chunk.

    Substring matching means "report" also matches "reporting".
    """
    content_lower = content.lower()
    return sum(1 for token in tokens if token in content_lower)


def rank_chunks(
    tokens: Sequence[str], chunks: Sequence[DocChunk], *, top_k: int = DEFAULT_TOP_K
) -> list[tuple[DocChunk, int]]:
    """Score, drop zero scores, sort descending and keep the top k.

    ``list.sort`` is stable, so equal scores keep their input order.
    """
    scored = [(chunk, score_chunk(tokens, chunk.content)) for chunk in chunks]
    scored = [(chunk, score) for chunk, score in scored if score > 0]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:top_k]


class LexicalRetriever:
    """Keyword-overlap retriever over a user's processed documents.

    Scoring is literal substring overlap with no stemming or embeddings.
    A vector-similarity retriever with the same ``retrieve`` signature can
    replace it without touching callers.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        chunks: ChunkStore,
        *,
        top_k: int = DEFAULT_TOP_K,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
        min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH,
    ) -> None:
        self._documents = documents
        self._chunks = chunks
        self._top_k = top_k
        self._scan_limit = scan_limit
        self._min_token_length = min_token_length

    async def retrieve(
        self,
        query: str,
        candidates: Sequence[Document],
        ctx: RequestContext,
    ) -> list[RetrievalResult]:
        """Return up to top_k chunks of ``candidates`` ranked against ``query``.

        Candidates not owned by the caller or not yet processed are ignored.
        """
        tokens = tokenize_query(query, min_token_length=self._min_token_length)
        if not tokens:
            return []

        eligible = {
            doc.id: doc
            for doc in candidates
            if doc.user_id == ctx.user_id and doc.status == DocumentStatus.processed
        }
        if not eligible:
            return []

        chunks = await self._chunks.list_chunks(list(eligible), limit=self._scan_limit)
        ranked = rank_chunks(tokens, chunks, top_k=self._top_k)
        retrieval_matches.observe(len(ranked))

        logger.debug(
            f"Retrieval scanned {len(chunks)} chunks across {len(eligible)} documents, "
            f"{len(ranked)} matched"
        )

        return [
            RetrievalResult(
                content=chunk.content,
                document_name=eligible[chunk.document_id].name,
                document_id=chunk.document_id,
                chunk_index=chunk.chunk_index,
                score=float(score),
            )
            for chunk, score in ranked
        ]

    async def retrieve_for_user(self, query: str, ctx: RequestContext) -> list[RetrievalResult]:
        """Retrieve across every processed document the caller owns."""
        candidates = await self._documents.list_for_user(ctx, status=DocumentStatus.processed)
        return await self.retrieve(query, candidates, ctx)
