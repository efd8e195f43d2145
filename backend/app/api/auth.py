"""Auth dependency - resolves a bearer token to the caller's user id.

Token validation is delegated to the external auth service when one is
configured. Without it, a stub resolver accepts a bare user UUID as the
token, which is what local development and tests use.
"""

import logging
import uuid
from typing import Annotated, Protocol

import httpx
from fastapi import Depends, Header, Request

from backend.app.db.context import RequestContext
from backend.app.errors import AuthenticationError

logger = logging.getLogger(__name__)


class TokenResolver(Protocol):
    """Resolves an access token to a user id."""

    async def resolve(self, token: str) -> uuid.UUID:
        """Return the owning user id.

        Raises:
            AuthenticationError: If the token is invalid
        """
        ...


class StubTokenResolver:
    """Accepts "Bearer <user_uuid>" tokens."""

    async def resolve(self, token: str) -> uuid.UUID:
        """Parse the token as a UUID."""
        try:
            return uuid.UUID(token)
        except ValueError as e:
            raise AuthenticationError("Invalid token") from e


class HTTPTokenResolver:
    """Asks the auth service who owns the token (``GET {base_url}/user``)."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        headers = {"apikey": api_key} if api_key else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )

    async def resolve(self, token: str) -> uuid.UUID:
        """Fetch the user for this token."""
        try:
            response = await self._client.get("/user", headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as e:
            logger.error(f"Auth service unreachable: {e}")
            raise AuthenticationError("Invalid token") from e

        if response.status_code != 200:
            raise AuthenticationError("Invalid token")

        try:
            return uuid.UUID(response.json()["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise AuthenticationError("Invalid token") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def get_token_resolver(request: Request) -> TokenResolver:
    """Token resolver configured on the application."""
    resolver: TokenResolver = request.app.state.services.token_resolver
    return resolver


async def get_current_context(
    resolver: Annotated[TokenResolver, Depends(get_token_resolver)],
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        resolver: Token resolver
        authorization: Authorization header (e.g., "Bearer <token>")

    Returns:
        RequestContext with the caller's user_id

    Raises:
        AuthenticationError: If the header is missing, malformed or the token is invalid
    """
    if not authorization:
        raise AuthenticationError("No authorization header")

    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization[7:].strip()  # Strip "Bearer "
    if not token:
        raise AuthenticationError("Invalid token")

    user_id = await resolver.resolve(token)
    return RequestContext(user_id=user_id)
