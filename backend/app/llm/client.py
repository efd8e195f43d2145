"""Completion service client with OpenAI-compatible gateway integration.

Security: Reads API key from environment only, never hardcoded.
Provides deterministic fallback when no key present for testing.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Protocol

import openai
from openai import AsyncOpenAI

from backend.app.config import Settings
from backend.app.errors import DownstreamServiceError
from backend.app.models.chat import ChatMessage

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Protocol for completion service implementations."""

    async def complete(self, messages: Sequence[ChatMessage], *, model: str | None = None) -> str:
        """Return a full, non-streamed completion.

        Raises:
            DownstreamServiceError: If the service answers non-2xx
        """
        ...

    async def stream_chat(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Open a completion stream and return an iterator over its tokens.

        The request is sent before this coroutine returns, so upstream status
        errors raise here rather than mid-stream.

        Raises:
            DownstreamServiceError: If the service answers non-2xx
        """
        ...


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required)."""

    def __init__(self, reply: str | None = None) -> None:
        self._reply = reply

    def _answer(self, messages: Sequence[ChatMessage]) -> str:
        if self._reply is not None:
            return self._reply
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        return f"(stub) You said: {last_user[:200]}"

    async def complete(self, messages: Sequence[ChatMessage], *, model: str | None = None) -> str:
        """Return the canned answer."""
        return self._answer(messages)

    async def stream_chat(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Stream the canned answer word by word."""
        words = self._answer(messages).split(" ")

        async def _tokens() -> AsyncIterator[str]:
            for i, word in enumerate(words):
                yield word if i == 0 else f" {word}"

        return _tokens()


def _to_openai_messages(messages: Sequence[ChatMessage]) -> list[dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


class OpenAICompletionClient:
    """OpenAI-compatible gateway client."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize completion client.

        Args:
            api_key: Gateway API key (read from environment)
            model: Default chat model
            base_url: Gateway root; OpenAI itself when None
            client: Optional preconfigured SDK client (for testing)
        """
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model

    async def complete(self, messages: Sequence[ChatMessage], *, model: str | None = None) -> str:
        """Return a full completion."""
        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=_to_openai_messages(messages),
            )
        except openai.APIStatusError as e:
            logger.error(f"AI gateway error: {e.status_code} {e.message}")
            raise DownstreamServiceError.from_upstream_status(e.status_code) from e
        except openai.APIError as e:
            logger.error(f"AI gateway request failed: {e}")
            raise DownstreamServiceError.from_upstream_status(None) from e

        return response.choices[0].message.content or ""

    async def stream_chat(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Open a streamed completion."""
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=_to_openai_messages(messages),
                stream=True,
            )
        except openai.APIStatusError as e:
            logger.error(f"AI gateway error: {e.status_code} {e.message}")
            raise DownstreamServiceError.from_upstream_status(e.status_code) from e
        except openai.APIError as e:
            logger.error(f"AI gateway request failed: {e}")
            raise DownstreamServiceError.from_upstream_status(None) from e

        async def _tokens() -> AsyncIterator[str]:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content

        return _tokens()

    async def aclose(self) -> None:
        """Close the SDK client's connection pool."""
        await self.client.close()


def get_completion_client(settings: Settings) -> CompletionClient:
    """Factory function to get appropriate completion client based on config.

    Returns:
        OpenAICompletionClient if API key is configured, DeterministicStubClient otherwise
    """
    api_key = settings.llm_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI-compatible completion client")
        return OpenAICompletionClient(
            api_key=api_key.get_secret_value(),
            model=settings.llm_model,
            base_url=settings.llm_base_url,
        )
    else:
        logger.warning("No LLM API key configured, using deterministic stub client")
        return DeterministicStubClient()
