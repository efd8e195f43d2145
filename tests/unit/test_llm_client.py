"""Tests for the completion client.

All tests are deterministic and do not make real network calls.
"""

from collections.abc import AsyncIterator
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from backend.app.config import Settings
from backend.app.errors import DownstreamServiceError
from backend.app.llm.client import (
    DeterministicStubClient,
    OpenAICompletionClient,
    get_completion_client,
)
from backend.app.models.chat import ChatMessage

MESSAGES = [
    ChatMessage(role="system", content="be brief"),
    ChatMessage(role="user", content="What was Q3 revenue?"),
]


def _status_error(status_code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    response = httpx.Response(status_code, request=request)
    return openai.APIStatusError("upstream failure", response=response, body=None)


def _mock_sdk(create: AsyncMock) -> MagicMock:
    sdk = MagicMock()
    sdk.chat.completions.create = create
    return sdk


def _delta(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def _collect(tokens: AsyncIterator[str]) -> list[str]:
    return [token async for token in tokens]


@pytest.mark.asyncio
async def test_stub_complete_echoes_last_user_message() -> None:
    reply = await DeterministicStubClient().complete(MESSAGES)

    assert reply == "(stub) You said: What was Q3 revenue?"


@pytest.mark.asyncio
async def test_stub_stream_reassembles_reply() -> None:
    client = DeterministicStubClient(reply="Revenue grew twelve percent")

    tokens = await _collect(await client.stream_chat(MESSAGES))

    assert tokens == ["Revenue", " grew", " twelve", " percent"]
    assert "".join(tokens) == "Revenue grew twelve percent"


@pytest.mark.asyncio
async def test_openai_complete_returns_message_content() -> None:
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="42"))])
    create = AsyncMock(return_value=response)
    client = OpenAICompletionClient(api_key="k", model="chat-model", client=_mock_sdk(create))

    reply = await client.complete(MESSAGES, model="small-model")

    assert reply == "42"
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "small-model"
    assert kwargs["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "What was Q3 revenue?"},
    ]


@pytest.mark.asyncio
async def test_openai_complete_defaults_to_configured_model() -> None:
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None))])
    create = AsyncMock(return_value=response)
    client = OpenAICompletionClient(api_key="k", model="chat-model", client=_mock_sdk(create))

    assert await client.complete(MESSAGES) == ""
    assert create.call_args.kwargs["model"] == "chat-model"


@pytest.mark.asyncio
async def test_openai_stream_yields_non_empty_deltas() -> None:
    async def _stream() -> AsyncIterator[SimpleNamespace]:
        for item in [_delta("Hel"), _delta(None), SimpleNamespace(choices=[]), _delta("lo")]:
            yield item

    create = AsyncMock(return_value=_stream())
    client = OpenAICompletionClient(api_key="k", model="chat-model", client=_mock_sdk(create))

    tokens = await _collect(await client.stream_chat(MESSAGES))

    assert tokens == ["Hel", "lo"]
    assert create.call_args.kwargs["stream"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("upstream", "expected_status", "expected_message"),
    [
        (429, 429, "Rate limit exceeded. Please try again in a moment."),
        (402, 402, "AI credits exhausted. Please add credits to continue."),
        (503, 500, "AI service error: 503"),
    ],
)
async def test_openai_status_errors_are_mapped(
    upstream: int, expected_status: int, expected_message: str
) -> None:
    create = AsyncMock(side_effect=_status_error(upstream))
    client = OpenAICompletionClient(api_key="k", model="chat-model", client=_mock_sdk(create))

    with pytest.raises(DownstreamServiceError) as exc_info:
        await client.stream_chat(MESSAGES)

    assert exc_info.value.status_code == expected_status
    assert exc_info.value.message == expected_message


@pytest.mark.asyncio
async def test_openai_connection_error_is_500() -> None:
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
    client = OpenAICompletionClient(api_key="k", model="chat-model", client=_mock_sdk(create))

    with pytest.raises(DownstreamServiceError) as exc_info:
        await client.complete(MESSAGES)

    assert exc_info.value.status_code == 500


def test_factory_without_key_returns_stub() -> None:
    settings = Settings(_env_file=None, llm_api_key=None)

    assert isinstance(get_completion_client(settings), DeterministicStubClient)


def test_factory_with_key_returns_openai_client() -> None:
    settings = Settings(
        _env_file=None,
        llm_api_key="test-key",
        llm_base_url="https://gateway.test/v1",
        llm_model="chat-model",
    )

    client = get_completion_client(settings)

    assert isinstance(client, OpenAICompletionClient)
    assert client.model == "chat-model"


@pytest.mark.asyncio
async def test_openai_client_closes_sdk_client() -> None:
    sdk = _mock_sdk(AsyncMock())
    sdk.close = AsyncMock()
    client = OpenAICompletionClient(api_key="k", model="m", client=sdk)

    await client.aclose()

    sdk.close.assert_awaited_once()
