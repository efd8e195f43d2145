"""Chat request models."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Single conversation message."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Request body for POST /chat.

    Size limits are configurable, so they are checked in the route rather
    than declared here.
    """

    messages: list[ChatMessage] = Field(..., min_length=1)
    conversation_id: str | None = Field(None, alias="conversationId")

    model_config = {"populate_by_name": True}
