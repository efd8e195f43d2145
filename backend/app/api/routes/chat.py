"""Chat endpoint - POST /chat, streamed as server-sent events."""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.errors import AppError, ValidationError
from backend.app.llm.prompt import build_messages, source_names
from backend.app.middleware.ratelimit import enforce_rate_limit
from backend.app.models.chat import ChatMessage, ChatRequest
from backend.app.services import Services, get_services

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


def validate_conversation(messages: list[ChatMessage], settings: Settings) -> str:
    """Enforce conversation size limits.

    Returns:
        Content of the latest user message

    Raises:
        ValidationError: If a limit is exceeded or there is no user message
    """
    if len(messages) > settings.chat_max_messages:
        raise ValidationError(f"Too many messages (max {settings.chat_max_messages})")

    for i, message in enumerate(messages):
        if len(message.content) > settings.chat_max_message_chars:
            raise ValidationError(
                f"Message {i} is too long (max {settings.chat_max_message_chars} characters)"
            )

    latest = next((m.content for m in reversed(messages) if m.role == "user"), None)
    if latest is None or not latest.strip():
        raise ValidationError("A user message is required")
    return latest


def delta_frame(content: str) -> str:
    """One SSE frame in the OpenAI streaming delta shape."""
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload)}\n\n"


async def sse_frames(tokens: AsyncIterator[str]) -> AsyncGenerator[str, None]:
    """Relay completion tokens, always terminating with [DONE]."""
    try:
        async for token in tokens:
            yield delta_frame(token)
    except AppError as e:
        logger.error(f"Completion stream failed: {e.message}")
        yield f"data: {json.dumps({'error': e.message})}\n\n"
    except Exception as e:
        logger.exception("Completion stream failed")
        yield f"data: {json.dumps({'error': str(e) or 'Stream interrupted'})}\n\n"
    yield DONE_FRAME


@router.post("/chat")
async def chat(
    request: ChatRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    services: Annotated[Services, Depends(get_services)],
) -> StreamingResponse:
    """Answer a conversation turn grounded in the caller's documents.

    The intent and the cited document names travel in response headers so
    the client can render them before the first token arrives.
    """
    latest = validate_conversation(request.messages, services.settings)

    intent = await services.classifier.classify(latest)
    results = await services.retriever.retrieve_for_user(latest, ctx)
    messages = build_messages(request.messages, intent, results)

    # Upstream status errors raise here, before any bytes are sent
    tokens = await services.completion.stream_chat(messages)

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
        "X-Intent-Type": intent.category.value,
        "X-Intent-Confidence": f"{intent.confidence:.2f}",
    }
    if results:
        # ASCII-escaped so non-latin file names survive header encoding
        headers["X-RAG-Sources"] = json.dumps(source_names(results))

    logger.info(
        "Chat turn",
        extra={
            "structured": {
                "user_id": str(ctx.user_id),
                "intent": intent.category.value,
                "sources": len(results),
                "messages": len(request.messages),
            }
        },
    )

    return StreamingResponse(sse_frames(tokens), media_type="text/event-stream", headers=headers)
