"""Unit tests for auth module."""

import json
import uuid

import httpx
import pytest

from backend.app.api.auth import HTTPTokenResolver, StubTokenResolver, get_current_context
from backend.app.errors import AuthenticationError


@pytest.mark.asyncio
async def test_get_current_context_valid_token() -> None:
    user_id = uuid.uuid4()

    ctx = await get_current_context(StubTokenResolver(), authorization=f"Bearer {user_id}")

    assert ctx.user_id == user_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("authorization", "message"),
    [
        (None, "No authorization header"),
        ("", "No authorization header"),
        ("Token abc", "Invalid authorization header format"),
        ("Bearer ", "Invalid token"),
        ("Bearer not-a-uuid", "Invalid token"),
    ],
)
async def test_get_current_context_rejects(authorization: str | None, message: str) -> None:
    with pytest.raises(AuthenticationError) as exc_info:
        await get_current_context(StubTokenResolver(), authorization=authorization)

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == message


def _resolver(handler: httpx.MockTransport) -> HTTPTokenResolver:
    client = httpx.AsyncClient(transport=handler, base_url="https://auth.test")
    return HTTPTokenResolver("https://auth.test", client=client)


@pytest.mark.asyncio
async def test_http_resolver_returns_user_id() -> None:
    user_id = uuid.uuid4()
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=json.dumps({"id": str(user_id), "email": "a@b.c"}))

    resolver = _resolver(httpx.MockTransport(handler))

    assert await resolver.resolve("tok-123") == user_id
    assert seen[0].url.path == "/user"
    assert seen[0].headers["Authorization"] == "Bearer tok-123"
    await resolver.aclose()


@pytest.mark.asyncio
async def test_http_resolver_rejects_unknown_token() -> None:
    resolver = _resolver(httpx.MockTransport(lambda request: httpx.Response(401)))

    with pytest.raises(AuthenticationError):
        await resolver.resolve("expired")


@pytest.mark.asyncio
async def test_http_resolver_rejects_malformed_body() -> None:
    resolver = _resolver(
        httpx.MockTransport(lambda request: httpx.Response(200, content=b'{"user": {}}'))
    )

    with pytest.raises(AuthenticationError):
        await resolver.resolve("tok")


@pytest.mark.asyncio
async def test_http_resolver_unreachable_service_is_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    resolver = _resolver(httpx.MockTransport(handler))

    with pytest.raises(AuthenticationError):
        await resolver.resolve("tok")
